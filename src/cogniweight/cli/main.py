"""
cogniweight CLI - Main Entry Point

Command-line host for the cognitive state engine over a folder of Markdown
notes.

Usage:
    cogniweight status notes/graphs.md      # Weight and review state of a note
    cogniweight stage notes/graphs.md       # Cognitive scores and stage
    cogniweight due                          # Notes due for review
    cogniweight decay                        # Run the daily decay sweep now
    cogniweight review --max 3               # Answer generated questions
    cogniweight validate-key                 # Check the service API key
"""

import asyncio
import json
import sys
from contextlib import asynccontextmanager
from functools import wraps
from pathlib import Path
from typing import Callable, Optional

import click

from loguru import logger


OPTION_LETTERS = "ABCD"


# ============================================================================
# Engine Lifecycle
# ============================================================================

async def scan_vault(engine, vault_dir: Path) -> int:
    """Register every Markdown note under ``vault_dir``; paths are vault-relative."""
    if not vault_dir.is_dir():
        logger.warning(f"Vault directory not found: {vault_dir}")
        return 0
    count = 0
    for file_path in sorted(vault_dir.rglob("*.md")):
        rel = file_path.relative_to(vault_dir).as_posix()
        await engine.load_document(rel, file_path.read_text(encoding="utf-8"))
        count += 1
    logger.debug(f"Scanned {count} notes from {vault_dir}")
    return count


@asynccontextmanager
async def engine_context(config_path: Optional[Path] = None, vault: Optional[str] = None):
    """
    Async context manager for the engine lifecycle: load config, create and
    initialize the engine, scan the vault, persist on exit.
    """
    from cogniweight.core.config import load_config
    from cogniweight.core.engine import CognitiveEngine

    config = load_config(config_path)
    engine = CognitiveEngine(config)
    try:
        await engine.initialize()
        await scan_vault(engine, Path(vault or config.paths.vault_dir))
        yield engine
    finally:
        await engine.close()


def with_engine(func: Callable) -> Callable:
    """
    Decorator running an async ``(ctx, engine, ...)`` command body inside
    ``engine_context`` via ``asyncio.run``.
    """
    @wraps(func)
    def wrapper(ctx, *args, **kwargs):
        config_path = Path(ctx.obj["config_path"]) if ctx.obj.get("config_path") else None

        async def run():
            async with engine_context(config_path, ctx.obj.get("vault")) as engine:
                return await func(ctx, engine, *args, **kwargs)

        return asyncio.run(run())

    return wrapper


def _fail(message: str, output_json: bool) -> None:
    if output_json:
        click.echo(json.dumps({"success": False, "error": message}, indent=2))
    else:
        click.echo(f"Error: {message}", err=True)
    sys.exit(1)


# ============================================================================
# CLI Group and Main Entry
# ============================================================================

@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    help="Path to config.yaml file",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output",
)
@click.option(
    "--vault",
    type=click.Path(),
    default=None,
    help="Notes directory (overrides paths.vault_dir)",
)
@click.pass_context
def cli(ctx, config: Optional[str], verbose: bool, vault: Optional[str]):
    """
    cogniweight - cognitive weights and spaced repetition for Markdown notes.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config
    ctx.obj["vault"] = vault

    # Configure logging
    logger.remove()
    if verbose:
        logger.add(sys.stderr, level="DEBUG")
    else:
        level = "WARNING"
        if config:
            from cogniweight.core.config import load_config
            level = load_config(Path(config)).observability.log_level
        logger.add(sys.stderr, level=level)


# ============================================================================
# CLI Commands
# ============================================================================

@cli.command()
@click.argument("path", required=True)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def status(ctx, path: str, output_json: bool):
    """
    Show weight, memory strength and review state of a note.

    Example:
        cogniweight status notes/graphs.md
    """
    from cogniweight.core.exceptions import NodeNotFoundError

    @with_engine
    async def _status(ctx, engine):
        try:
            info = engine.document_status(path)
        except NodeNotFoundError as e:
            _fail(e.message, output_json)
            return

        if output_json:
            click.echo(json.dumps(info, indent=2))
            return
        click.echo(f"Note:         {info['path']}")
        click.echo(f"Weight:       {info['weight']:.2f} (base {info['base']:.2f}, {info['interaction_count']} interactions)")
        click.echo(f"Strength:     {info['strength']:.3f} (EF {info['ef']:.2f})")
        click.echo(f"Due:          {'yes' if info['due'] else 'no'}")
        click.echo(f"Next review:  {info['next_review_date'] or '-'}")
        if info["links"]:
            click.echo(f"Links:        {', '.join(info['links'])}")

    return _status(ctx)


@cli.command()
@click.argument("path", required=True)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def stage(ctx, path: str, output_json: bool):
    """
    Show cognitive scores and the learning stage of a note.
    """
    from cogniweight.core.exceptions import NodeNotFoundError

    @with_engine
    async def _stage(ctx, engine):
        try:
            scores = await engine.cognitive_scores(path)
        except NodeNotFoundError as e:
            _fail(e.message, output_json)
            return
        label = engine.graph.stages.classify(scores)

        if output_json:
            click.echo(json.dumps({"path": path, "stage": label.value, "scores": scores.to_dict()}, indent=2))
            return
        click.echo(f"Stage: {label.value}")
        click.echo(f"  complexity:      {scores.complexity:.2f}")
        click.echo(f"  engagement:      {scores.engagement:.4f}")
        click.echo(f"  centrality:      {scores.centrality:.4f}")
        click.echo(f"  reference count: {scores.reference_count}")

    return _stage(ctx)


@cli.command()
@click.option("--limit", "-n", type=int, default=None, help="Maximum notes to list")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def due(ctx, limit: Optional[int], output_json: bool):
    """
    List notes that are due for review (random order).
    """
    @with_engine
    async def _due(ctx, engine):
        nodes = engine.due_documents()
        if limit is not None:
            nodes = nodes[:limit]

        if output_json:
            click.echo(json.dumps([
                {"path": n.path, "weight": engine.current_weight(n.path)} for n in nodes
            ], indent=2))
            return
        if not nodes:
            click.echo("No notes due for review")
            return
        for n in nodes:
            click.echo(f"{engine.current_weight(n.path):.2f}  {n.path}")

    return _due(ctx)


@cli.command()
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def decay(ctx, output_json: bool):
    """
    Run the daily decay sweep now.
    """
    @with_engine
    async def _decay(ctx, engine):
        updated = await engine.apply_daily_decay()
        if output_json:
            click.echo(json.dumps({"success": True, "updated": updated}, indent=2))
        else:
            click.echo(f"Cognitive weights updated for {updated} notes")

    return _decay(ctx)


@cli.command()
@click.option("--max", "max_questions", type=int, default=None, help="Maximum questions")
@click.pass_context
def review(ctx, max_questions: Optional[int]):
    """
    Generate questions for due notes and record your answers.
    """
    @with_engine
    async def _review(ctx, engine):
        questions = await engine.prepare_review(max_questions)
        if not questions:
            click.echo("No questions available for review")
            return

        correct_count = 0
        for number, question in enumerate(questions, start=1):
            letters = OPTION_LETTERS[: len(question.options)]
            click.echo()
            click.echo(f"[{number}/{len(questions)}] {question.question}")
            for letter, option in zip(letters, question.options):
                click.echo(f"  {letter}. {option}")
            choice = click.prompt("Answer", type=click.Choice(list(letters), case_sensitive=False))
            selected = letters.index(choice.upper())

            if await engine.submit_answer(question, selected):
                correct_count += 1
                click.echo("Correct")
            else:
                click.echo(f"Wrong, the answer is {letters[question.correct_index]}")

        click.echo()
        click.echo(f"Score: {correct_count}/{len(questions)}")

    return _review(ctx)


@cli.command("validate-key")
@click.option("--key", default=None, help="Key to check (defaults to service.api_key)")
@click.pass_context
def validate_key(ctx, key: Optional[str]):
    """
    Check that the service accepts the API key.
    """
    @with_engine
    async def _validate(ctx, engine):
        if await engine.validate_api_key(key):
            click.echo("API key is valid")
        else:
            click.echo("API key is invalid", err=True)
            sys.exit(1)

    return _validate(ctx)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
