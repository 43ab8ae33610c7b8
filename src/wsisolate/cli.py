"""CLI entry points for workspace isolation."""

from __future__ import annotations

import logging
import os
import sys
from argparse import ArgumentParser
from pathlib import Path
from typing import Protocol

from wsisolate.config import ConfigError, FileConfigSource
from wsisolate.engine import Engine
from wsisolate.matchers import MatcherRegistry
from wsisolate.niri.host import NiriHost
from wsisolate.niri.ipc import NiriError

logger = logging.getLogger(__name__)

# Upper bound on one wait for host events, so config changes are noticed
CONFIG_POLL_INTERVAL = 1.0


def _setup_logging(verbose: int = 0) -> None:
    """Configure logging based on WSISOLATE_DEBUG or -v flags."""
    level_str = os.environ.get("WSISOLATE_DEBUG", "").upper()
    if verbose >= 2 or level_str == "DEBUG":
        level = logging.DEBUG
    elif verbose == 1 or level_str in ("1", "TRUE", "INFO"):
        level = logging.INFO
    else:
        return  # No logging setup if not enabled

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


class _EventSource(Protocol):
    def dispatch(self, timeout: float | None) -> int: ...


def run_loop(
    engine: Engine,
    events: _EventSource,
    config_source: FileConfigSource,
    *,
    max_cycles: int | None = None,
) -> None:
    """Deliver host events, fire due actions and poll the configuration."""
    cycles = 0
    while max_cycles is None or cycles < max_cycles:
        timeout = engine.scheduler.timeout()
        if timeout is None or timeout > CONFIG_POLL_INTERVAL:
            timeout = CONFIG_POLL_INTERVAL
        events.dispatch(timeout)
        engine.scheduler.run_due()
        config_source.check()
        cycles += 1


def _build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        description="Move windows of selected applications onto their own workspace.",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help="Configuration JSON (default: ~/.config/wsisolate/config.json)",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="niri output whose workspaces are managed (default: focused output)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="count",
        default=0,
        help="Log placement decisions (-vv for debug output)",
    )
    return parser


def main(args: list[str] | None = None) -> int:
    parsed = _build_parser().parse_args(args)
    _setup_logging(parsed.verbose)

    config_source = FileConfigSource(parsed.config)
    host = NiriHost(output=parsed.output)
    engine = Engine(host, config_source)

    try:
        host.start()
        if not engine.enable():
            print(f"Error: cannot load {config_source.path}", file=sys.stderr)
            return 1
        run_loop(engine, host, config_source)
    except NiriError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 0
    finally:
        engine.disable()
        host.close()
    return 0


def check_config(args: list[str] | None = None) -> int:
    """Validate the configuration and list the parsed matchers."""
    parser = ArgumentParser(description="Validate the wsisolate configuration.")
    parser.add_argument("--config", "-c", type=Path, default=None)
    parsed = parser.parse_args(args)

    source = FileConfigSource(parsed.config)
    try:
        settings = source.load()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    registry = MatcherRegistry()
    registry.sync(settings.apps)
    for entry in registry:
        suffix = " (background)" if entry.background else ""
        print(f"{entry.pattern}{suffix}")
    if not registry:
        print("No applications configured.")
    return 0


def main_cli() -> None:
    sys.exit(main())


def check_config_cli() -> None:
    sys.exit(check_config())
