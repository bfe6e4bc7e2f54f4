"""
Command-line interface for the Wayback redirect checker.

This module provides the main CLI entry point with commands for:
- check: Build the redirect history report of a single domain
- check-list: Check multiple domains from a file
- config: Configuration management

Configuration comes from a JSON file (``--config``) or, when none is given,
from the environment and an optional ``.env`` file.
"""

import argparse
import asyncio
import dataclasses
import json
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from . import __version__
from .audit_logger import AuditLogger
from .config import (
    ArchiveConfig,
    CacheConfig,
    ConcurrencyConfig,
    HealthConfig,
    LoggingConfig,
    ReportConfig,
    RetryConfig,
    SystemConfig,
)
from .enums import LogLevel
from .exceptions import ConfigurationError
from .orchestrator import CheckOrchestrator

DEFAULT_CONFIG_PATH = Path.home() / ".wayback_checker" / "config.json"

_SECTIONS = {
    "retry": RetryConfig,
    "archive": ArchiveConfig,
    "concurrency": ConcurrencyConfig,
    "health": HealthConfig,
    "cache": CacheConfig,
    "report": ReportConfig,
    "logging": LoggingConfig,
}


def create_default_config(
    include_titles: bool = False,
    max_snapshots: Optional[int] = None,
) -> SystemConfig:
    """
    Create a default system configuration.

    Args:
        include_titles: Add the page titles section to reports
        max_snapshots: Cap on snapshots per CDX query (None = no cap)

    Returns:
        SystemConfig with default settings
    """
    return SystemConfig(
        report=ReportConfig(
            include_titles=include_titles,
            max_snapshots_to_check=snapshot_cap(max_snapshots),
        ),
    )


def snapshot_cap(value: Optional[int]) -> Optional[int]:
    """Map a snapshot cap to its configured form; zero or less means no cap."""
    if value is None or value <= 0:
        return None
    return value


def _build_section(cls, data: dict):
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(
            code="unknown_keys",
            message=f"Unknown {cls.__name__} keys: {', '.join(sorted(unknown))}",
            details={"section": cls.__name__, "keys": sorted(unknown)},
        )
    return cls(**data)


def config_from_dict(data: dict) -> SystemConfig:
    """
    Build a SystemConfig from its JSON form; missing keys keep their defaults.

    Raises:
        ConfigurationError: On unknown sections or keys
    """
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ConfigurationError(
            code="unknown_sections",
            message=f"Unknown configuration sections: {', '.join(sorted(unknown))}",
            details={"sections": sorted(unknown)},
        )
    return SystemConfig(**{
        name: _build_section(cls, data.get(name) or {}) for name, cls in _SECTIONS.items()
    })


def validate_config(config: SystemConfig) -> list[str]:
    """Return a list of problems, empty when the configuration is usable."""
    problems = []
    if config.retry.max_retries < 1:
        problems.append("retry.max_retries must be at least 1")
    if config.retry.initial_backoff_seconds > config.retry.max_backoff_seconds:
        problems.append("retry.initial_backoff_seconds exceeds retry.max_backoff_seconds")
    if config.archive.page_size < 1:
        problems.append("archive.page_size must be positive")
    if not config.archive.user_agents:
        problems.append("archive.user_agents must not be empty")
    if config.concurrency.max_concurrent_requests < 1:
        problems.append("concurrency.max_concurrent_requests must be at least 1")
    if config.report.max_chunk_size < 1:
        problems.append("report.max_chunk_size must be positive")
    try:
        LogLevel(config.logging.level.lower())
    except ValueError:
        problems.append(f"logging.level '{config.logging.level}' is not a log level")
    if config.logging.output_format not in ("json", "text", "both"):
        problems.append(f"logging.output_format '{config.logging.output_format}' is invalid")
    return problems


def load_config_from_file(config_path: Path) -> Optional[SystemConfig]:
    """
    Load configuration from a JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        SystemConfig if successful, None otherwise
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return config_from_dict(data)
    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, TypeError, ConfigurationError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return None


def save_config_to_file(config: SystemConfig, config_path: Path) -> bool:
    """
    Save configuration to a JSON file.

    Args:
        config: SystemConfig to save
        config_path: Path to save the configuration

    Returns:
        True if successful, False otherwise
    """
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(dataclasses.asdict(config), f, indent=2, ensure_ascii=False)
        return True
    except (OSError, TypeError) as e:
        print(f"Error saving config: {e}", file=sys.stderr)
        return False


def _int_env(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _list_env(name: str, default: list[str]) -> list[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return list(default)
    return [part.strip() for part in value.replace(";", ",").split(",") if part.strip()]


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config_from_env(
    env_file: Optional[Path] = None,
    base: Optional[SystemConfig] = None,
) -> SystemConfig:
    """
    Build configuration from environment variables.

    A ``.env`` file is loaded first (variables already set in the
    environment win). Durations are given in milliseconds, as in
    ``INITIAL_BACKOFF_MS``; malformed numbers keep the default.
    """
    load_dotenv(dotenv_path=env_file)
    base = base or SystemConfig()

    max_snapshots = snapshot_cap(
        _int_env("MAX_SNAPSHOTS_TO_CHECK", base.report.max_snapshots_to_check)
    )

    retry = dataclasses.replace(
        base.retry,
        max_retries=_int_env("MAX_RETRIES", base.retry.max_retries),
        initial_backoff_seconds=_float_env(
            "INITIAL_BACKOFF_MS", base.retry.initial_backoff_seconds * 1000
        ) / 1000,
        max_backoff_seconds=_float_env("MAX_BACKOFF_MS", base.retry.max_backoff_seconds * 1000) / 1000,
    )
    archive = dataclasses.replace(
        base.archive,
        request_timeout_seconds=_float_env(
            "REQUEST_TIMEOUT_MS", base.archive.request_timeout_seconds * 1000
        ) / 1000,
    )
    concurrency = dataclasses.replace(
        base.concurrency,
        max_concurrent_requests=_int_env(
            "MAX_CONCURRENT_REQUESTS", base.concurrency.max_concurrent_requests
        ),
        request_delay_seconds=_float_env(
            "REQUEST_DELAY_MS", base.concurrency.request_delay_seconds * 1000
        ) / 1000,
    )
    cache = dataclasses.replace(
        base.cache,
        default_ttl_seconds=_float_env("CACHE_DEFAULT_TTL_SECONDS", base.cache.default_ttl_seconds),
    )
    report = dataclasses.replace(
        base.report,
        max_snapshots_to_check=max_snapshots,
        max_chunk_size=_int_env("MAX_CHUNK_SIZE", base.report.max_chunk_size),
        include_titles=_bool_env("INCLUDE_TITLES", base.report.include_titles),
        ignored_domains=_list_env("IGNORED_DOMAINS", base.report.ignored_domains),
        common_service_domains=_list_env(
            "COMMON_SERVICE_DOMAINS", base.report.common_service_domains
        ),
    )
    logging_config = dataclasses.replace(
        base.logging,
        level=(os.getenv("LOG_LEVEL") or base.logging.level).lower(),
    )

    return dataclasses.replace(
        base,
        retry=retry,
        archive=archive,
        concurrency=concurrency,
        cache=cache,
        report=report,
        logging=logging_config,
    )


def create_logger(config: SystemConfig, verbose: bool = False) -> AuditLogger:
    level = "debug" if verbose else config.logging.level
    return AuditLogger.from_level_name(level, output_format=config.logging.output_format)


async def check_single_domain(
    domain: str,
    config: SystemConfig,
    as_json: bool = False,
    verbose: bool = False,
) -> int:
    """
    Check a single domain and print its report.

    Returns:
        Exit code (0 on a complete report, 1 on error)
    """
    logger = create_logger(config, verbose)

    async with CheckOrchestrator(config=config, logger=logger) as orchestrator:
        result = await orchestrator.check_domain_history(domain)

    if as_json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        for chunk in result.message_chunks:
            print(chunk)
            print()
        print(
            f"Execution time: {result.execution_time.seconds} seconds "
            f"({result.execution_time.formatted})"
        )

    return 0 if result.ok else 1


async def check_domain_list(
    domains_file: Path,
    config: SystemConfig,
    output_file: Optional[Path] = None,
    verbose: bool = False,
) -> int:
    """
    Check multiple domains from a file.

    Args:
        domains_file: Path to file containing domains (one per line, ``#`` comments)
        config: System configuration
        output_file: Optional path to write results as JSON
        verbose: Enable debug logging

    Returns:
        Exit code (0 if every domain produced a report, 1 otherwise)
    """
    try:
        with open(domains_file, "r", encoding="utf-8") as f:
            domains = [line.strip() for line in f if line.strip() and not line.startswith("#")]
    except FileNotFoundError:
        print(f"Error: File not found: {domains_file}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error reading file: {e}", file=sys.stderr)
        return 1

    if not domains:
        print("Error: No domains found in file", file=sys.stderr)
        return 1

    print(f"Checking {len(domains)} domain(s)...")
    logger = create_logger(config, verbose)

    async with CheckOrchestrator(config=config, logger=logger) as orchestrator:
        results = await orchestrator.check_multiple_domains(domains)

    failed = 0
    for domain, entries in results.items():
        print(f"\n=== {domain} ===")
        for entry in entries:
            print(entry)
        if len(entries) == 1 and entries[0].startswith("Error:"):
            failed += 1

    print(f"\nSummary: {len(results) - failed}/{len(results)} domain(s) checked")

    if output_file:
        try:
            output_file.parent.mkdir(parents=True, exist_ok=True)
            with open(output_file, "w", encoding="utf-8") as f:
                json.dump(results, f, indent=2, ensure_ascii=False)
            print(f"Results written to: {output_file}")
        except OSError as e:
            print(f"Error writing results: {e}", file=sys.stderr)

    return 0 if failed == 0 else 1


def _resolve_config(args: argparse.Namespace) -> Optional[SystemConfig]:
    if args.config:
        config = load_config_from_file(Path(args.config))
        if config is None:
            print(f"Error: Could not load config from {args.config}", file=sys.stderr)
        return config
    return load_config_from_env()


def apply_check_options(config: SystemConfig, args: argparse.Namespace) -> SystemConfig:
    """Apply the 'check' command's report flags on top of the loaded configuration."""
    if args.include_titles:
        config.report.include_titles = True
    if args.max_snapshots is not None:
        config.report.max_snapshots_to_check = snapshot_cap(args.max_snapshots)
    return config


def cmd_check(args: argparse.Namespace) -> int:
    """Handle the 'check' command."""
    config = _resolve_config(args)
    if config is None:
        return 1

    apply_check_options(config, args)

    return asyncio.run(check_single_domain(
        domain=args.domain,
        config=config,
        as_json=args.json,
        verbose=args.verbose,
    ))


def cmd_check_list(args: argparse.Namespace) -> int:
    """Handle the 'check-list' command."""
    config = _resolve_config(args)
    if config is None:
        return 1

    output_file = Path(args.output) if args.output else None

    return asyncio.run(check_domain_list(
        domains_file=Path(args.file),
        config=config,
        output_file=output_file,
        verbose=args.verbose,
    ))


def cmd_config(args: argparse.Namespace) -> int:
    """Handle the 'config' command."""
    config_path = Path(args.path) if args.path else DEFAULT_CONFIG_PATH

    if args.action == "show":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"No configuration found at: {config_path}")
            print("Use 'config init' to create a default configuration.")
            return 1

        print(f"Configuration from: {config_path}")
        print(f"  Archive: {config.archive.base_url}")
        print(f"  Max retries: {config.retry.max_retries}")
        print(f"  Concurrency: {config.concurrency.max_concurrent_requests}")
        print(f"  Max snapshots: {config.report.max_snapshots_to_check or 'unlimited'}")
        print(f"  Page titles: {config.report.include_titles}")
        print(f"  Log level: {config.logging.level}")
        return 0

    elif args.action == "init":
        if config_path.exists() and not args.force:
            print(f"Configuration already exists at: {config_path}")
            print("Use --force to overwrite.")
            return 1

        if save_config_to_file(create_default_config(), config_path):
            print(f"Configuration created at: {config_path}")
            return 0
        return 1

    elif args.action == "validate":
        config = load_config_from_file(config_path)
        if config is None:
            print(f"Error: Could not load config from {config_path}", file=sys.stderr)
            return 1

        problems = validate_config(config)
        if problems:
            for problem in problems:
                print(f"  - {problem}", file=sys.stderr)
            return 1

        print(f"Configuration at {config_path} is valid.")
        return 0

    return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="wayback-checker",
        description="Redirect history of a domain from the Wayback Machine",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # 'check' command
    check_parser = subparsers.add_parser(
        "check",
        help="Report the redirect history of a single domain",
    )
    check_parser.add_argument(
        "domain",
        help="Domain to check (e.g., example.com)",
    )
    check_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON",
    )
    check_parser.add_argument(
        "--include-titles",
        action="store_true",
        help="Add the page titles section",
    )
    check_parser.add_argument(
        "--max-snapshots",
        type=int,
        help="Cap on snapshots per CDX query (0 for no cap)",
    )
    check_parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    check_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    check_parser.set_defaults(func=cmd_check)

    # 'check-list' command
    check_list_parser = subparsers.add_parser(
        "check-list",
        help="Check multiple domains from a file",
    )
    check_list_parser.add_argument(
        "file",
        help="Path to file containing domains (one per line)",
    )
    check_list_parser.add_argument(
        "--output", "-o",
        help="Path to write results as JSON",
    )
    check_list_parser.add_argument(
        "--config", "-c",
        help="Path to configuration file",
    )
    check_list_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    check_list_parser.set_defaults(func=cmd_check_list)

    # 'config' command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
    )
    config_parser.add_argument(
        "action",
        choices=["show", "init", "validate"],
        help="Configuration action",
    )
    config_parser.add_argument(
        "--path", "-p",
        help="Path to configuration file",
    )
    config_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Force overwrite existing configuration",
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
