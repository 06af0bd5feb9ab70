"""
Tests for the cogniweight CLI.

Commands run against a real engine over a temporary vault; remote calls are
patched out.
"""

import json
import sys
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner
from loguru import logger

from cogniweight.cli.main import cli
from cogniweight.core.exceptions import QuestionGenerationError
from cogniweight.llm.questions import Question


@pytest.fixture
def runner():
    """CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def restore_logger(monkeypatch):
    monkeypatch.delenv("COGNI_API_KEY", raising=False)
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def vault(tmp_path):
    root = tmp_path / "vault"
    (root / "notes").mkdir(parents=True)
    (root / "notes" / "graphs.md").write_text(
        "# Graphs\n\nA graph has vertices and edges. See [[trees]].", encoding="utf-8"
    )
    (root / "trees.md").write_text("Trees are connected acyclic graphs.", encoding="utf-8")
    return root


@pytest.fixture
def config_file(tmp_path, vault):
    path = tmp_path / "config.yaml"
    path.write_text(
        "cogniweight:\n"
        "  paths:\n"
        f"    vault_dir: {vault.as_posix()}\n"
        f"    state_file: {(tmp_path / 'state.json').as_posix()}\n"
        "  observability:\n"
        "    log_level: ERROR\n",
        encoding="utf-8",
    )
    return path


def invoke(runner, config_file, *args, **kwargs):
    return runner.invoke(cli, ["--config", str(config_file), *args], **kwargs)


def fixed_question(path, content):
    return Question(path=path, question=f"What is in {path}?", options=["this", "that"], correct_index=0)


class TestCLIStatus:
    """Tests for status command."""

    def test_status_json(self, runner, config_file):
        result = invoke(runner, config_file, "status", "notes/graphs.md", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["id"] == "notes_graphs"
        assert data["interaction_count"] == 0
        assert data["links"] == ["trees"]
        assert data["due"] is True

    def test_status_text(self, runner, config_file):
        result = invoke(runner, config_file, "status", "trees.md")
        assert result.exit_code == 0
        assert "Note:" in result.output
        assert "trees.md" in result.output

    def test_status_unknown_note(self, runner, config_file):
        result = invoke(runner, config_file, "status", "missing.md")
        assert result.exit_code == 1
        assert "not found" in result.output


class TestCLIStage:
    """Tests for stage command."""

    def test_stage_json(self, runner, config_file):
        result = invoke(runner, config_file, "stage", "trees.md", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["stage"] in ("novice", "intermediate", "expert")
        assert data["scores"]["reference_count"] == 1
        assert 0.1 <= data["scores"]["complexity"] <= 1.0

    def test_stage_text(self, runner, config_file):
        result = invoke(runner, config_file, "stage", "notes/graphs.md")
        assert result.exit_code == 0
        assert "Stage:" in result.output


class TestCLIDue:
    """Tests for due command."""

    def test_due_json(self, runner, config_file):
        result = invoke(runner, config_file, "due", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert sorted(d["path"] for d in data) == ["notes/graphs.md", "trees.md"]

    def test_due_limit(self, runner, config_file):
        result = invoke(runner, config_file, "due", "-n", "1", "--json")
        assert result.exit_code == 0
        assert len(json.loads(result.output)) == 1

    def test_empty_vault(self, runner, config_file, tmp_path):
        empty = tmp_path / "empty"
        empty.mkdir()
        result = runner.invoke(cli, ["--config", str(config_file), "--vault", str(empty), "due"])
        assert result.exit_code == 0
        assert "No notes due" in result.output


class TestCLIDecay:
    """Tests for decay command."""

    def test_decay_json(self, runner, config_file, tmp_path):
        result = invoke(runner, config_file, "decay", "--json")
        assert result.exit_code == 0
        assert json.loads(result.output) == {"success": True, "updated": 2}

        state = json.loads((tmp_path / "state.json").read_text(encoding="utf-8"))
        assert set(state["documents"]) == {"notes/graphs.md", "trees.md"}


class TestCLIReview:
    """Tests for review command."""

    def test_review_session(self, runner, config_file, tmp_path):
        with patch(
            "cogniweight.llm.questions.QuestionGenerator.generate",
            new=AsyncMock(side_effect=fixed_question),
        ):
            result = invoke(runner, config_file, "review", "--max", "2", input="A\nB\n")

        assert result.exit_code == 0
        assert "Correct" in result.output
        assert "Wrong, the answer is A" in result.output
        assert "Score: 1/2" in result.output

        state = json.loads((tmp_path / "state.json").read_text(encoding="utf-8"))
        histories = sorted(doc["memory"]["history"] for doc in state["documents"].values())
        assert histories == [[0], [1]]

    def test_review_nothing_generated(self, runner, config_file):
        async def failing(path, content):
            raise QuestionGenerationError(path, 3)

        with patch(
            "cogniweight.llm.questions.QuestionGenerator.generate",
            new=AsyncMock(side_effect=failing),
        ):
            result = invoke(runner, config_file, "review")

        assert result.exit_code == 0
        assert "No questions available" in result.output


class TestCLIValidateKey:
    """Tests for validate-key command."""

    def test_valid(self, runner, config_file):
        with patch(
            "cogniweight.llm.client.DeepSeekClient.validate_api_key",
            new=AsyncMock(return_value=True),
        ) as validate:
            result = invoke(runner, config_file, "validate-key", "--key", "sk-abc")
        assert result.exit_code == 0
        assert "API key is valid" in result.output
        validate.assert_awaited_once_with("sk-abc")

    def test_invalid(self, runner, config_file):
        with patch(
            "cogniweight.llm.client.DeepSeekClient.validate_api_key",
            new=AsyncMock(return_value=False),
        ):
            result = invoke(runner, config_file, "validate-key")
        assert result.exit_code == 1
        assert "API key is invalid" in result.output


class TestCLIHelp:
    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("status", "stage", "due", "decay", "review", "validate-key"):
            assert command in result.output
