"""Pre-flight check for the strategic analysis API configuration.

Loads ``AppSettings`` from an env file, then checks the combinations the
settings models cannot judge one field at a time, such as more queue slots than
the window admits or an upload directory that cannot be created. Problems fail
the run. Warnings are printed and only fail it with ``--strict``.

Example::

    python -m scripts.check_env --env-file /srv/strategic-analysis/.env --strict
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from pydantic import ValidationError

from strategic_analysis.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CONFIG_PROBLEM = 3
EXIT_RUNTIME_ERROR = 5

# Longest a single analysis may keep a queue slot before operators should know.
SLOT_HOLD_WARNING_SECONDS = 600.0


@dataclass(frozen=True)
class Finding:
    setting: str
    message: str
    fatal: bool = True

    def render(self) -> str:
        label = "problem" if self.fatal else "warning"
        return f"[{label}] {self.setting}: {self.message}"


def _queue_findings(settings: AppSettings) -> Iterator[Finding]:
    queue = settings.queue
    if queue.max_concurrent > queue.max_per_window:
        yield Finding(
            "QUEUE_MAX_CONCURRENT",
            f"{queue.max_concurrent} slots but only {queue.max_per_window} calls per "
            f"{queue.window_seconds:.0f}s; the extra slots only wait on the window.",
            fatal=False,
        )

    config = queue.to_config()
    backoff = sum(config.backoff_for(attempt) for attempt in range(1, queue.max_attempts))
    hold = backoff + queue.max_attempts * queue.job_timeout_seconds
    if hold > SLOT_HOLD_WARNING_SECONDS:
        yield Finding(
            "QUEUE_JOB_TIMEOUT_SECONDS",
            f"a rate-limited job can hold its slot for {hold:.0f}s "
            f"({queue.max_attempts} attempts, {backoff:.0f}s of backoff).",
            fatal=False,
        )


def _upload_findings(settings: AppSettings) -> Iterator[Finding]:
    uploads = settings.uploads
    if uploads.max_bytes <= 0:
        yield Finding("MAX_UPLOAD_BYTES", "must be a positive number of bytes.")
    if uploads.max_additional_documents < 0:
        yield Finding("MAX_ADDITIONAL_DOCUMENTS", "must not be negative.")

    upload_dir = settings.upload_dir
    if upload_dir.exists() and not upload_dir.is_dir():
        yield Finding("UPLOAD_DIR", f"{upload_dir} exists and is not a directory.")
        return
    existing = upload_dir
    while not existing.exists() and existing != existing.parent:
        existing = existing.parent
    if not os.access(existing, os.W_OK):
        yield Finding("UPLOAD_DIR", f"{existing} is not writable.")


def _runtime_findings(settings: AppSettings) -> Iterator[Finding]:
    if not isinstance(logging.getLevelName(settings.log_level.upper()), int):
        yield Finding("APP_LOG_LEVEL", f"unknown level {settings.log_level!r}.")
    if not 0.0 <= settings.gemini.temperature <= 2.0:
        yield Finding(
            "GEMINI_TEMPERATURE",
            f"{settings.gemini.temperature} is outside the supported 0-2 range.",
        )
    for origin in settings.allowed_origins_list:
        if not origin.startswith(("http://", "https://")) or origin.endswith("/"):
            yield Finding(
                "ALLOWED_ORIGINS",
                f"{origin!r} must be scheme://host[:port] without a trailing slash.",
            )
    if not settings.security.frontend_api_key and not settings.is_development:
        yield Finding(
            "FRONTEND_API_KEY",
            f"not set; the API accepts any caller in {settings.environment}.",
            fatal=False,
        )


def collect_findings(settings: AppSettings) -> list[Finding]:
    """Return every problem and warning for ``settings``."""
    return [
        *_queue_findings(settings),
        *_upload_findings(settings),
        *_runtime_findings(settings),
    ]


def _print_summary(settings: AppSettings) -> None:
    queue = settings.queue
    print(f"Environment:   {settings.environment}")
    print(f"Gemini model:  {settings.gemini.model_name}")
    print(
        f"Queue:         {queue.max_per_window} calls per {queue.window_seconds:.0f}s, "
        f"concurrency {queue.max_concurrent}, {queue.max_attempts} attempts"
    )
    print(
        f"Throttle:      {settings.throttle.limit} requests per "
        f"{settings.throttle.window_seconds:.0f}s per client"
    )
    key_state = "set" if settings.security.frontend_api_key else "NOT SET"
    print(f"Frontend key:  {key_state}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate the analysis API settings before starting it."
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        type=Path,
        help="Path to the environment file (default: .env in the repo root).",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Treat warnings as problems.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.exists():
        print(f"Environment file {env_file} does not exist.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    _load_env_file(str(env_file))
    try:
        settings = AppSettings()  # type: ignore[call-arg]
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    _print_summary(settings)
    findings = collect_findings(settings)
    for finding in findings:
        print(finding.render(), file=sys.stderr)

    if any(finding.fatal or args.strict for finding in findings):
        return EXIT_CONFIG_PROBLEM
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
