#!/usr/bin/env python3
# cli.py
"""
Command line entry points.

`contract-sim JOB` explores the source and target programs named by a job
file and prints the simulation examples as JSON. `contract-sim-evaluate`
answers `<state-json>@<expression>` requests read from stdin.

Settings come from the environment only (see config.Settings); logs go to
stderr because stdout carries results.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional, TextIO

import structlog
from structlog.stdlib import LoggerFactory

from .config import Settings
from .core.executor import ExecutorFactory
from .errors import UsageError
from .ethereum.chain import Chain
from .ethereum.compiler import Compiler
from .evaluation.evaluator import Evaluator
from .simulation.examples import GenerationResult, generate
from .simulation.fixtures import ExampleTest, load_example_test

logger = structlog.get_logger()


def configure_logging(log_level: str = "INFO", log_format: str = "console"):
    """Configure structured logging"""
    if structlog.is_configured():
        return

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper(), logging.INFO),
        stream=sys.stderr,
        force=True,
    )
    renderer = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logger.debug("Logging configured", log_level=log_level, log_format=log_format)


class ArgumentParser(argparse.ArgumentParser):
    """Raises UsageError instead of exiting, so callers decide the exit path."""

    def error(self, message):
        raise UsageError(message)


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="contract-sim",
        description="Generate simulation examples between two Solidity contracts",
        add_help=False,
    )
    parser.add_argument(
        "job",
        help="JSON job file naming the source and target contracts (paths relative to the job file)",
    )
    return parser


async def run_job(job: ExampleTest, settings: Settings) -> GenerationResult:
    backend = await Chain.connect(settings.web3_provider_url, gas_limit=settings.gas_limit)
    compiler = Compiler(settings.solc_binary)
    return await generate(job.parameters(settings.states), backend, compiler)


def main(argv: Optional[List[str]] = None) -> int:
    settings = Settings.from_env()
    configure_logging(settings.log_level, settings.log_format)
    parser = build_parser()

    try:
        args = parser.parse_args(argv)
    except UsageError as e:
        parser.print_usage(sys.stderr)
        print(f"{parser.prog}: error: {e}", file=sys.stderr)
        return 2

    job = load_example_test(args.job)
    logger.info("Loaded job", job=job.name, source=job.source, target=job.target)

    try:
        result = asyncio.run(run_job(job, settings))
    except KeyboardInterrupt:
        logger.info("Generation interrupted by user")
        return 130

    print(json.dumps(result.to_dict(), indent=2))
    return 0


async def serve(settings: Settings, stream: TextIO, out: TextIO) -> int:
    backend = await Chain.connect(settings.web3_provider_url, gas_limit=settings.gas_limit)
    accounts = await backend.list_accounts()
    if not accounts:
        raise ConnectionError(f"No unlocked accounts at {settings.web3_provider_url}")

    evaluator = Evaluator(ExecutorFactory(backend), accounts[0], Compiler(settings.solc_binary))
    return await evaluator.listen(stream, out)


def evaluate_main(argv: Optional[List[str]] = None) -> int:
    settings = Settings.from_env()
    configure_logging(settings.log_level, settings.log_format)

    args = sys.argv[1:] if argv is None else argv
    if args:
        print("usage: contract-sim-evaluate < requests", file=sys.stderr)
        return 2

    try:
        asyncio.run(serve(settings, sys.stdin, sys.stdout))
    except KeyboardInterrupt:
        logger.info("Evaluator interrupted by user")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
