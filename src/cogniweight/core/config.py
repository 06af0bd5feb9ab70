"""
cogniweight Configuration System
================================
Centralized, validated configuration with environment variable overrides.

There is no module-level singleton: ``load_config()`` returns a value that
callers pass explicitly into every component constructor.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from cogniweight.core.exceptions import ConfigurationError


INTERVAL_POLICIES = ("linear", "exponential")

_HHMM = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


@dataclass(frozen=True)
class WeightConfig:
    initial_weight: float = 0.5
    decay_lambda: float = 0.05
    beta_coefficient: float = 0.2
    alpha: float = 1.0
    daily_update_time: str = "02:00"


@dataclass(frozen=True)
class EngagementConfig:
    smoothing_factor: float = 0.2


@dataclass(frozen=True)
class CentralityConfig:
    damping_factor: float = 0.85
    iterations: int = 10


@dataclass(frozen=True)
class StageConfig:
    ema_period: int = 5


@dataclass(frozen=True)
class MemoryConfig:
    window_size: int = 100
    default_success_rate: float = 0.7


@dataclass(frozen=True)
class ReviewConfig:
    max_review_interval: int = 30
    interval_policy: str = "linear"  # "linear" | "exponential"
    max_questions: int = 5


@dataclass(frozen=True)
class LinkConfig:
    min_confidence: float = 0.6
    max_candidates: int = 50


@dataclass(frozen=True)
class ServiceConfig:
    """Remote question / embedding / link-inference service."""
    api_key: str = ""
    base_url: str = "https://api.deepseek.com/v1"
    chat_model: str = "deepseek-chat"
    embedding_model: str = "text-embedding-3-large"
    temperature: float = 0.7
    max_tokens: int = 1000
    top_p: float = 0.95
    timeout_seconds: int = 10
    max_attempts: int = 3
    retry_delay_seconds: float = 1.0
    key_prefix: str = "sk-"


@dataclass(frozen=True)
class SchedulerConfig:
    enabled: bool = True
    check_interval_seconds: int = 60


@dataclass(frozen=True)
class PathsConfig:
    vault_dir: str = "./vault"
    state_file: str = "./data/cognitive_state.json"


@dataclass(frozen=True)
class ObservabilityConfig:
    log_level: str = "INFO"


@dataclass(frozen=True)
class CogniConfig:
    """Root configuration for the cognitive state engine."""

    version: str = "1.0"
    weight: WeightConfig = field(default_factory=WeightConfig)
    engagement: EngagementConfig = field(default_factory=EngagementConfig)
    centrality: CentralityConfig = field(default_factory=CentralityConfig)
    stage: StageConfig = field(default_factory=StageConfig)
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    review: ReviewConfig = field(default_factory=ReviewConfig)
    links: LinkConfig = field(default_factory=LinkConfig)
    service: ServiceConfig = field(default_factory=ServiceConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)


def _env_override(key: str, default):
    """Check for COGNI_<KEY> environment variable override."""
    env_key = f"COGNI_{key.upper()}"
    val = os.environ.get(env_key)
    if val is None:
        return default
    # Type coercion based on the default's type
    if isinstance(default, bool):
        return val.lower() in ("true", "1", "yes")
    if isinstance(default, int):
        return int(val)
    if isinstance(default, float):
        return float(val)
    return val


def parse_daily_time(value: str) -> tuple:
    """Parse an ``HH:MM`` string into an ``(hour, minute)`` tuple."""
    match = _HHMM.match(str(value).strip())
    if not match:
        raise ConfigurationError(
            config_key="weight.daily_update_time",
            reason=f"Expected HH:MM, got {value!r}",
        )
    return int(match.group(1)), int(match.group(2))


def _validate(config: CogniConfig) -> None:
    parse_daily_time(config.weight.daily_update_time)

    if config.review.max_review_interval < 1:
        raise ConfigurationError(
            config_key="review.max_review_interval",
            reason=f"Must be at least 1 day, got {config.review.max_review_interval}",
        )
    if config.review.interval_policy not in INTERVAL_POLICIES:
        raise ConfigurationError(
            config_key="review.interval_policy",
            reason=f"Must be one of {INTERVAL_POLICIES}, got {config.review.interval_policy!r}",
        )
    if not 0.0 < config.centrality.damping_factor < 1.0:
        raise ConfigurationError(
            config_key="centrality.damping_factor",
            reason=f"Must lie in (0, 1), got {config.centrality.damping_factor}",
        )
    if config.memory.window_size < 1:
        raise ConfigurationError(
            config_key="memory.window_size",
            reason=f"Must be positive, got {config.memory.window_size}",
        )


def load_config(path: Optional[Path] = None) -> CogniConfig:
    """
    Load configuration from YAML file with environment variable overrides.

    Priority: ENV > YAML > defaults.

    Args:
        path: Path to config.yaml. If None, searches ./config.yaml.

    Returns:
        Validated CogniConfig instance.

    Raises:
        ConfigurationError: If a value fails validation.
    """
    if path is None:
        candidate = Path("config.yaml")
        if candidate.exists():
            path = candidate

    raw = {}
    if path is not None and Path(path).exists():
        with open(path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
            raw = loaded.get("cogniweight") or {}

    # Build weight config
    w_raw = raw.get("weight") or {}
    weight = WeightConfig(
        initial_weight=_env_override("WEIGHT_INITIAL_WEIGHT", w_raw.get("initial_weight", 0.5)),
        decay_lambda=_env_override("WEIGHT_DECAY_LAMBDA", w_raw.get("decay_lambda", 0.05)),
        beta_coefficient=_env_override("WEIGHT_BETA_COEFFICIENT", w_raw.get("beta_coefficient", 0.2)),
        alpha=_env_override("WEIGHT_ALPHA", w_raw.get("alpha", 1.0)),
        daily_update_time=_env_override("WEIGHT_DAILY_UPDATE_TIME", w_raw.get("daily_update_time", "02:00")),
    )

    eng_raw = raw.get("engagement") or {}
    engagement = EngagementConfig(
        smoothing_factor=eng_raw.get("smoothing_factor", 0.2),
    )

    cen_raw = raw.get("centrality") or {}
    centrality = CentralityConfig(
        damping_factor=cen_raw.get("damping_factor", 0.85),
        iterations=cen_raw.get("iterations", 10),
    )

    stage_raw = raw.get("stage") or {}
    stage = StageConfig(
        ema_period=stage_raw.get("ema_period", 5),
    )

    mem_raw = raw.get("memory") or {}
    memory = MemoryConfig(
        window_size=mem_raw.get("window_size", 100),
        default_success_rate=mem_raw.get("default_success_rate", 0.7),
    )

    # Build review config
    rev_raw = raw.get("review") or {}
    review = ReviewConfig(
        max_review_interval=_env_override("REVIEW_MAX_REVIEW_INTERVAL", rev_raw.get("max_review_interval", 30)),
        interval_policy=_env_override("REVIEW_INTERVAL_POLICY", rev_raw.get("interval_policy", "linear")),
        max_questions=_env_override("REVIEW_MAX_QUESTIONS", rev_raw.get("max_questions", 5)),
    )

    link_raw = raw.get("links") or {}
    links = LinkConfig(
        min_confidence=_env_override("LINKS_MIN_CONFIDENCE", link_raw.get("min_confidence", 0.6)),
        max_candidates=link_raw.get("max_candidates", 50),
    )

    # Build service config
    svc_raw = raw.get("service") or {}
    service = ServiceConfig(
        api_key=_env_override("API_KEY", svc_raw.get("api_key", "")),
        base_url=_env_override("SERVICE_BASE_URL", svc_raw.get("base_url", "https://api.deepseek.com/v1")),
        chat_model=_env_override("SERVICE_CHAT_MODEL", svc_raw.get("chat_model", "deepseek-chat")),
        embedding_model=_env_override("SERVICE_EMBEDDING_MODEL", svc_raw.get("embedding_model", "text-embedding-3-large")),
        temperature=_env_override("SERVICE_TEMPERATURE", svc_raw.get("temperature", 0.7)),
        max_tokens=_env_override("SERVICE_MAX_TOKENS", svc_raw.get("max_tokens", 1000)),
        top_p=svc_raw.get("top_p", 0.95),
        timeout_seconds=_env_override("SERVICE_TIMEOUT_SECONDS", svc_raw.get("timeout_seconds", 10)),
        max_attempts=svc_raw.get("max_attempts", 3),
        retry_delay_seconds=svc_raw.get("retry_delay_seconds", 1.0),
        key_prefix=svc_raw.get("key_prefix", "sk-"),
    )

    sched_raw = raw.get("scheduler") or {}
    scheduler = SchedulerConfig(
        enabled=_env_override("SCHEDULER_ENABLED", sched_raw.get("enabled", True)),
        check_interval_seconds=sched_raw.get("check_interval_seconds", 60),
    )

    # Build paths config
    paths_raw = raw.get("paths") or {}
    paths = PathsConfig(
        vault_dir=_env_override("VAULT_DIR", paths_raw.get("vault_dir", "./vault")),
        state_file=_env_override("STATE_FILE", paths_raw.get("state_file", "./data/cognitive_state.json")),
    )

    obs_raw = raw.get("observability") or {}
    observability = ObservabilityConfig(
        log_level=_env_override("LOG_LEVEL", obs_raw.get("log_level", "INFO")),
    )

    config = CogniConfig(
        version=raw.get("version", "1.0"),
        weight=weight,
        engagement=engagement,
        centrality=centrality,
        stage=stage,
        memory=memory,
        review=review,
        links=links,
        service=service,
        scheduler=scheduler,
        paths=paths,
        observability=observability,
    )
    _validate(config)
    return config


__all__ = [
    "INTERVAL_POLICIES",
    "WeightConfig",
    "EngagementConfig",
    "CentralityConfig",
    "StageConfig",
    "MemoryConfig",
    "ReviewConfig",
    "LinkConfig",
    "ServiceConfig",
    "SchedulerConfig",
    "PathsConfig",
    "ObservabilityConfig",
    "CogniConfig",
    "parse_daily_time",
    "load_config",
]
