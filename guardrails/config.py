"""Engine and logging settings, loaded once per process."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

LOG_FORMATS = ("console", "json")


@dataclass(frozen=True)
class EngineConfig:
    profile_definition: Optional[str] = None
    blacklist_definition: Optional[str] = None
    rule_directory: Optional[str] = None
    allow_suppression: bool = True
    print_suppression: bool = False
    isolate_custom_rule_exceptions: bool = False
    max_workers: int = 1


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "WARNING"
    format: str = "console"


def _env_flag(name: str) -> Optional[bool]:
    value = os.environ.get(name)
    if value is None:
        return None
    return value.lower() in ("true", "1", "yes")


def _read_definition(path: Optional[str]) -> Optional[str]:
    if path is None:
        return None
    return Path(path).read_text(encoding="utf-8")


def load_engine_config(
    profile_path: Optional[str] = None,
    blacklist_path: Optional[str] = None,
    rule_directory: Optional[str] = None,
    allow_suppression: bool = True,
    print_suppression: bool = False,
    isolate_custom_rule_exceptions: Optional[bool] = None,
    max_workers: Optional[int] = None,
) -> EngineConfig:
    """Read profile/blacklist files and fill unset options from the environment.

    Explicit arguments win; ``GUARDRAILS_ISOLATE_RULE_EXCEPTIONS`` and
    ``GUARDRAILS_WORKERS`` apply only when the matching argument is ``None``.
    """

    if isolate_custom_rule_exceptions is None:
        isolate_custom_rule_exceptions = bool(_env_flag("GUARDRAILS_ISOLATE_RULE_EXCEPTIONS"))
    if max_workers is None:
        env_workers = os.environ.get("GUARDRAILS_WORKERS", "")
        max_workers = int(env_workers) if env_workers.isdigit() else 1

    return EngineConfig(
        profile_definition=_read_definition(profile_path),
        blacklist_definition=_read_definition(blacklist_path),
        rule_directory=rule_directory,
        allow_suppression=allow_suppression,
        print_suppression=print_suppression,
        isolate_custom_rule_exceptions=isolate_custom_rule_exceptions,
        max_workers=max(1, max_workers),
    )


def load_logging_config(level: Optional[str] = None, log_format: Optional[str] = None) -> LoggingConfig:
    level = level or os.environ.get("GUARDRAILS_LOG_LEVEL") or LoggingConfig.level
    log_format = log_format or os.environ.get("GUARDRAILS_LOG_FORMAT") or LoggingConfig.format
    if log_format not in LOG_FORMATS:
        log_format = LoggingConfig.format
    return LoggingConfig(level=level.upper(), format=log_format)
