"""
Main entry point for market-cli.

    market-cli fx --base USD --quote JPY --amount 100
    market-cli crypto --base BTC --quote USD --amount 0.5
    market-cli expr --query "1 btc + 3 eth to jpy"
"""
import argparse
import asyncio
import sys
from typing import List, Optional
import orjson

from config.settings import Settings, get_settings
from core.cache import FileCacheStore, PriceCache
from core.formatter import format_market_human, format_rows_human, rows_payload
from core.service import MarketService
from errors import MarketError
from models.market import MarketKind, MarketRequest
from providers.client import ProviderClient
from utils.logger import configure_logging, get_logger

logger = get_logger("main")

OUTPUT_MODES = ("json", "human")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="market-cli",
        description="FX + crypto market data CLI"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    fx = subparsers.add_parser("fx", help="Query fiat exchange rate (Frankfurter)")
    crypto = subparsers.add_parser(
        "crypto",
        help="Query crypto spot price (Coinbase with Kraken fallback)"
    )
    for command in (fx, crypto):
        command.add_argument("--base", required=True)
        command.add_argument("--quote", required=True)
        command.add_argument("--amount", required=True)
        command.add_argument("--output", choices=OUTPUT_MODES, default="json")

    expr = subparsers.add_parser("expr", help="Evaluate a market expression")
    expr.add_argument("--query", required=True)
    expr.add_argument("--default-fiat", dest="default_fiat", default=None)
    expr.add_argument("--output", choices=OUTPUT_MODES, default="json")

    return parser


async def run_command(args: argparse.Namespace, service: MarketService) -> str:
    """Execute a parsed command and return the stdout payload."""
    if args.command == "expr":
        rows = await service.evaluate_query(args.query, args.default_fiat)
        if args.output == "human":
            return format_rows_human(rows)
        return orjson.dumps(rows_payload(rows)).decode()

    request = MarketRequest.build(MarketKind(args.command), args.base, args.quote, args.amount)
    output = await service.resolve_market(request)
    if args.output == "human":
        return format_market_human(output)
    return orjson.dumps(output.model_dump(mode="json")).decode()


async def execute(args: argparse.Namespace, settings: Settings) -> str:
    """Build the service from settings and run one command."""
    async with ProviderClient(settings) as provider_client:
        price_cache = PriceCache(FileCacheStore(settings.cache_dir))
        service = MarketService(
            provider_client,
            price_cache,
            default_fiat=settings.DEFAULT_FIAT
        )
        try:
            return await run_command(args, service)
        finally:
            logger.debug(
                "Command finished",
                command=args.command,
                cache=price_cache.get_stats(),
                providers=provider_client.get_stats()
            )


def emit_error(error: MarketError, output_mode: str):
    """Write a terse, structured error to stderr."""
    if output_mode == "human":
        sys.stderr.write(f"error[{error.code}]: {error.message}\n")
    else:
        sys.stderr.write(orjson.dumps({"error": error.to_dict()}).decode() + "\n")


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point; returns the process exit code."""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    args = build_parser().parse_args(argv)

    try:
        payload = asyncio.run(execute(args, settings))
    except MarketError as e:
        logger.info("Command failed", command=args.command, layer=e.layer, error=e.message)
        emit_error(e, args.output)
        return e.exit_code

    sys.stdout.write(payload + "\n")
    return 0


def cli():
    sys.exit(main())


if __name__ == "__main__":
    cli()
