"""Pre-flight checks for the auth service environment.

Three commands share one validation step (``AppSettings`` must load from the
given ``.env`` file) and then:

``check``
    prints the effective Auth0/session configuration and audits it for
    settings that work but weaken the login flow;
``record``
    stores a baseline of per-key digests for the ``.env`` file;
``verify``
    compares the file against that baseline and names the keys that were
    added, removed or changed. Values are never printed, only key names.

Audit findings are warnings. ``--strict`` turns them into a non-zero exit so
deploy pipelines can refuse to ship a weak configuration.

Example usages::

    python -m scripts.check_env record --env-file /srv/lab-portal/.env \
        --baseline /srv/lab-portal/.env.baseline.json

    # Run later (e.g. from cron/systemd) to alert on drift.
    python -m scripts.check_env verify --strict --env-file /srv/lab-portal/.env \
        --baseline /srv/lab-portal/.env.baseline.json
"""

from __future__ import annotations

import argparse
import hashlib
import json
import sys
from pathlib import Path
from typing import Callable
from urllib.parse import urlsplit

from pydantic import ValidationError

from lab_portal.core.config import (
    AppSettings,
    CallbackResponseMode,
    RateLimitBackend,
    _load_env_file,
    _parse_env_file,
)

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_AUDIT_WARNING = 4
EXIT_RUNTIME_ERROR = 5

MIN_SECRET_LENGTH = 32
BASELINE_VERSION = 1


def _validate_settings(env_file: Path) -> AppSettings:
    """Ensure required settings can be loaded from the supplied env file."""
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def audit_settings(settings: AppSettings) -> list[str]:
    """Return human-readable warnings for settings that weaken the auth flow."""
    warnings: list[str] = []
    production = settings.environment.lower() == "production"

    if not settings.session.secret:
        warnings.append(
            "SESSION_SECRET is not set; session cookies are keyed with the Auth0 client secret."
        )
    elif len(settings.session.secret) < MIN_SECRET_LENGTH:
        warnings.append(f"SESSION_SECRET is shorter than {MIN_SECRET_LENGTH} characters.")

    base_url = str(settings.auth0.base_url)
    if urlsplit(base_url).scheme != "https":
        warnings.append("AUTH0_BASE_URL is not https; Secure session cookies will be dropped.")

    origin = settings.auth0.public_base_url
    if settings.allowed_origin.rstrip("/") != origin:
        warnings.append(
            f"ALLOWED_ORIGIN ({settings.allowed_origin}) differs from the portal origin ({origin})."
        )

    if not settings.access.allowed_domains:
        warnings.append("ACCESS_ALLOWED_DOMAINS is empty; any verified email may sign in.")

    if production and settings.callback.response_mode is CallbackResponseMode.REDIRECT:
        warnings.append(
            "CALLBACK_RESPONSE_MODE=redirect puts the session in the callback URL; "
            "prefer html or cookie in production."
        )

    if production and settings.rate_limit.backend is RateLimitBackend.MEMORY:
        warnings.append("RATE_LIMIT_BACKEND=memory is not shared between worker processes.")

    return warnings


def _key_digests(env_file: Path) -> dict[str, str]:
    return {
        key: hashlib.sha256(value.encode("utf-8")).hexdigest()
        for key, value in sorted(_parse_env_file(str(env_file)).items())
    }


def _describe(settings: AppSettings) -> int:
    """Print the effective auth configuration for a quick eyeball check."""
    domains = ", ".join(settings.access.allowed_domains) or "<any>"
    print(f"Auth0 tenant:      {settings.auth0.issuer}")
    print(f"Callback URI:      {settings.auth0.redirect_uri}")
    print(f"Callback mode:     {settings.callback.response_mode.value}")
    print(f"Session source:    {settings.session_source.value}")
    print(f"Allowed domains:   {domains}")
    print(f"Rate limit:        {settings.rate_limit.max_requests} per "
          f"{int(settings.rate_limit.window_seconds)}s ({settings.rate_limit.backend.value})")
    return EXIT_OK


def _record_baseline(env_file: Path, baseline: Path) -> int:
    """Persist per-key digests of ``env_file`` to ``baseline``."""
    digests = _key_digests(env_file)
    payload = {"version": BASELINE_VERSION, "keys": digests}
    baseline.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    print(f"Recorded baseline for {len(digests)} keys to {baseline}")
    return EXIT_OK


def _verify_baseline(env_file: Path, baseline: Path) -> int:
    """Compare the current per-key digests with the recorded baseline."""
    if not baseline.exists():
        print(
            f"Expected baseline file {baseline} is missing. "
            "Re-run with the 'record' command to establish one.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    try:
        expected: dict[str, str] = json.loads(baseline.read_text(encoding="utf-8"))["keys"]
    except (ValueError, KeyError, TypeError) as exc:
        print(f"Baseline file {baseline} is unreadable: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    actual = _key_digests(env_file)
    added = sorted(actual.keys() - expected.keys())
    removed = sorted(expected.keys() - actual.keys())
    changed = sorted(
        key for key in actual.keys() & expected.keys() if actual[key] != expected[key]
    )
    if not (added or removed or changed):
        print("Environment baseline OK.")
        return EXIT_OK

    lines = ["Environment drift detected:"]
    for label, keys in (("added", added), ("removed", removed), ("changed", changed)):
        if keys:
            lines.append(f"  {label}: {', '.join(keys)}")
    lines.append("Investigate recent changes before restarting services.")
    print("\n".join(lines), file=sys.stderr)
    return EXIT_CHECKSUM_ERROR


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate auth service settings, audit them and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common_arguments(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )
        subparser.add_argument(
            "--strict",
            action="store_true",
            help="Exit non-zero when the settings audit reports warnings.",
        )

    for name, help_text, baseline_help in (
        ("record", "Validate settings and store the per-key baseline.", "Where to write the baseline."),
        ("verify", "Validate settings and compare with the baseline.", "Previously recorded baseline."),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        add_common_arguments(subparser)
        subparser.add_argument("--baseline", required=True, type=Path, help=baseline_help)

    check_parser = subparsers.add_parser(
        "check",
        help="Validate settings and print the effective auth configuration.",
    )
    add_common_arguments(check_parser)

    return parser


def _ensure_env_file(env_file: Path) -> None:
    if not env_file.exists():
        raise FileNotFoundError(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool."
        )


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file: Path = args.env_file

    try:
        _ensure_env_file(env_file)
        settings = _validate_settings(env_file)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Unexpected error during validation: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    command: str = args.command
    handlers: dict[str, Callable[[], int]] = {
        "record": lambda: _record_baseline(env_file, args.baseline),
        "verify": lambda: _verify_baseline(env_file, args.baseline),
        "check": lambda: _describe(settings),
    }
    exit_code = handlers[command]()
    if exit_code != EXIT_OK:
        return exit_code

    warnings = audit_settings(settings)
    for warning in warnings:
        print(f"warning: {warning}", file=sys.stderr)
    if warnings and args.strict:
        return EXIT_AUDIT_WARNING
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
