"""
Environment-backed agent configuration.

AgentConfig is passed explicitly to every component that needs it; nothing
reads the environment after construction. Malformed values fall back to
the field default.
"""

import logging
import os
from dataclasses import dataclass

ENV_PREFIX = "MIGRATION_FIX_"
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _to_bool(value: str | None, default: bool) -> bool:
    """Convert common env var truthy/falsy values into booleans."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _to_int(value: str | None, default: int, minimum: int = 0) -> int:
    if value is None:
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _to_float(value: str | None, default: float, minimum: float = 0.0) -> float:
    if value is None:
        return default
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


@dataclass
class AgentConfig:
    max_iterations: int = 15
    max_token_budget: int = 500_000
    # fast-path diagnoses at or above this confidence skip the agent
    fast_track_threshold: float = 0.9
    target_version: str = "19.0.0"
    use_cache: bool = True
    cache_dir_name: str = ".migration-fix-cache"
    cache_max_age_seconds: float = 24 * 60 * 60
    max_file_size: int = 15_000
    command_timeout: float = 120.0
    max_retries: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 30.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "AgentConfig":
        env = os.environ if environ is None else environ
        defaults = cls()

        def get(name: str) -> str | None:
            return env.get(ENV_PREFIX + name)

        threshold = _to_float(get("FAST_TRACK_THRESHOLD"), defaults.fast_track_threshold)
        if threshold > 1.0:
            threshold = defaults.fast_track_threshold

        log_level = (get("LOG_LEVEL") or defaults.log_level).strip().upper()
        if log_level not in _LOG_LEVELS:
            log_level = defaults.log_level

        return cls(
            max_iterations=_to_int(get("MAX_ITERATIONS"), defaults.max_iterations),
            max_token_budget=_to_int(get("MAX_TOKEN_BUDGET"), defaults.max_token_budget),
            fast_track_threshold=threshold,
            target_version=(get("TARGET_VERSION") or defaults.target_version).strip(),
            use_cache=_to_bool(get("USE_CACHE"), defaults.use_cache),
            cache_dir_name=(get("CACHE_DIR") or defaults.cache_dir_name).strip(),
            cache_max_age_seconds=_to_float(get("CACHE_MAX_AGE"), defaults.cache_max_age_seconds),
            max_file_size=_to_int(get("MAX_FILE_SIZE"), defaults.max_file_size, minimum=1),
            command_timeout=_to_float(get("COMMAND_TIMEOUT"), defaults.command_timeout, minimum=0.001),
            max_retries=_to_int(get("MAX_RETRIES"), defaults.max_retries),
            retry_base_delay=_to_float(get("RETRY_BASE_DELAY"), defaults.retry_base_delay),
            retry_max_delay=_to_float(get("RETRY_MAX_DELAY"), defaults.retry_max_delay),
            log_level=log_level,
        )


def configure_logging(config: AgentConfig) -> None:
    """basicConfig at the configured level, for embedding applications."""
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
