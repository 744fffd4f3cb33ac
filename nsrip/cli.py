"""Command-line entry point for nsrip."""
from __future__ import annotations

import argparse
import asyncio
import os
import sys
from typing import List, Optional

from rich.console import Console
from rich.traceback import install as install_rich_traceback

from nsrip import __version__
from nsrip.config import ConfigError, ScanConfig
from nsrip.logging_config import get_logger, init_component_loggers
from nsrip.pipeline import run_scan
from nsrip.progress import stdin_trigger
from nsrip.sink import ResultSink
from nsrip.sources import PROVIDERS, load_domains, load_nameservers

logger = get_logger("cli")

BANNER = r"""                 _
                (_)
  _ __  ___ _ __ _ _ __
 | '_ \/ __| '__| | '_ \
 | | | \__ \ |  | | |_) |
 |_| |_|___/_|  |_| .__/
                  | |
                  |_|
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nsrip",
        description="Query target domains directly against lists of nameservers",
    )
    parser.add_argument("-d", "--domain", help="Specify the target domain")
    parser.add_argument("-l", "--list", dest="domains_file", help="Specify a file with a list of target domains")
    parser.add_argument(
        "-n", "--nameservers",
        help=f"Nameserver list to use ({', '.join(PROVIDERS)}, or the path to a custom file; default: cloud)",
    )
    parser.add_argument("-w", "--workers", type=int, help="Number of concurrent workers (default: 10)")
    parser.add_argument("-q", "--quiet", action="store_true", default=None, help="Only output raw results")
    parser.add_argument("-v", "--verbose", action="store_true", default=None, help="Show failed queries")
    parser.add_argument("-o", "--output", help="Output file where to save results")
    parser.add_argument("-t", "--timeout", dest="timeout_seconds", type=float, help="Per-query timeout in seconds (default: 5)")
    parser.add_argument("-p", "--port", type=int, help="Nameserver port (default: 53)")
    parser.add_argument(
        "--config",
        default=os.getenv("NSRIP_CONFIG"),
        help="Path to a YAML config file; command-line flags take precedence",
    )
    parser.add_argument("--log-file", help="Write JSONL logs to this file")
    parser.add_argument("--log-level", help="Log level (default: $NSRIP_LOG_LEVEL or WARNING)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def parse_config(argv: Optional[List[str]] = None) -> tuple[argparse.Namespace, ScanConfig]:
    args = build_parser().parse_args(argv)
    overrides = {
        "domain": args.domain,
        "domains_file": args.domains_file,
        "nameservers": args.nameservers,
        "workers": args.workers,
        "timeout_seconds": args.timeout_seconds,
        "port": args.port,
        "quiet": args.quiet,
        "verbose": args.verbose,
        "output": args.output,
    }
    return args, ScanConfig.from_sources(args.config, overrides)


async def main_async(
    cfg: ScanConfig,
    console: Optional[Console] = None,
    status: Optional[Console] = None,
) -> int:
    console = console or Console()
    status = status or Console(stderr=True)

    if not cfg.quiet:
        status.print(BANNER, markup=False, highlight=False)
        status.print(f"[v{__version__}]\n", markup=False, highlight=False)

    nameservers = load_nameservers(cfg.nameservers)
    domains = load_domains(cfg.domain, cfg.domains_file)

    sink = ResultSink(console, output_path=cfg.output, error_console=status, verbose=cfg.verbose)
    try:
        sink.open()
    except OSError as exc:
        raise ConfigError(f"Could not create output file: {exc}") from exc

    with sink:
        await run_scan(
            nameservers,
            domains,
            cfg,
            sink=sink,
            status=status,
            trigger=None if cfg.quiet else stdin_trigger(),
        )
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    install_rich_traceback()
    status = Console(stderr=True)
    try:
        args, cfg = parse_config(argv)
        if args.log_file or args.log_level:
            init_component_loggers(log_level=args.log_level, log_file=args.log_file)
        code = asyncio.run(main_async(cfg, status=status))
    except (ConfigError, FileNotFoundError) as exc:
        logger.info(f"Configuration error: {exc}", extra={"outcome": "error", "error_type": type(exc).__name__})
        status.print(f"[-] {exc}", style="red", markup=False, highlight=False)
        sys.exit(1)
    except KeyboardInterrupt:
        status.print("[-] Interrupted", style="red", markup=False, highlight=False)
        sys.exit(130)
    sys.exit(code)


if __name__ == "__main__":
    main()
