from __future__ import annotations

import argparse
import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from tangen.config import LONG_TERM, SHORT_TERM, AppConfig
from tangen.pipelines.recommend import build_pipeline, get_stock_recommendation
from tangen.providers.yahoo_provider import YahooQuoteService
from tangen.storage import CacheStore


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _fmt(value: float | None, suffix: str = "") -> str:
    return "-" if value is None else f"{value:.2f}{suffix}"


def _save_report(report: dict, output_dir: str) -> Path:
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    out_file = out_dir / f"recommend_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}.json"
    out_file.write_text(json.dumps(report, ensure_ascii=False, indent=2), encoding="utf-8")
    return out_file


def cmd_recommend(args: argparse.Namespace) -> None:
    config = AppConfig.from_env()
    if args.market_provider:
        config.providers.market = args.market_provider
    if args.signals:
        config.providers.signals = [s.strip() for s in args.signals.split(",") if s.strip()]
    if args.sentiment:
        config.providers.sentiment = args.sentiment
    if args.rationale:
        config.providers.rationale = args.rationale

    store = CacheStore(config.cache.path, ttl_ms=config.cache.ttl_ms)
    try:
        pipeline = build_pipeline(config, store)
        report = asyncio.run(get_stock_recommendation(args.symbols, args.horizon, pipeline=pipeline))
    finally:
        store.close()
    console = Console()

    if args.save:
        console.print(f"Report saved: {_save_report(report, args.save)}")

    if args.json:
        console.print_json(json.dumps(report))
    elif report["status"] == "success":
        table = Table(title=f"Recommendations ({report['metadata']['horizon']})")
        table.add_column("Company")
        table.add_column("Score", justify="right")
        table.add_column("Recent", justify="right")
        table.add_column("Historical", justify="right")
        table.add_column("Sentiment", justify="right")
        table.add_column("Risk", justify="right")
        table.add_column("Rationale")
        for item in report["recommendations"]:
            comp = item["details"]["components"]
            table.add_row(
                item["company"],
                f"{item['score']:.1f}",
                _fmt(comp["recentPerformance"]),
                _fmt(comp["historicalGrowth"]),
                _fmt(comp["sentimentScore"]),
                _fmt(comp["riskFactor"]),
                item["details"].get("rationale", ""),
            )
        console.print(table)

    if report["status"] == "error":
        console.print(f"[red]{report.get('message', 'Unknown error')}[/red]")
        raise SystemExit(1)


def cmd_search(args: argparse.Namespace) -> None:
    results = asyncio.run(YahooQuoteService().search_stocks(args.query))
    table = Table(title=f"Search: {args.query}")
    table.add_column("Symbol")
    table.add_column("Name")
    for r in results:
        table.add_row(r.symbol, r.name)
    Console().print(table)


def cmd_movers(args: argparse.Namespace) -> None:
    service = YahooQuoteService()
    if args.kind == "hot":
        quotes = asyncio.run(service.get_hot_stocks())
    else:
        quotes = asyncio.run(service.get_market_movers(args.kind))

    table = Table(title=f"Market movers: {args.kind}")
    table.add_column("Symbol")
    table.add_column("Name")
    table.add_column("Price", justify="right")
    table.add_column("Change", justify="right")
    for q in quotes:
        table.add_row(q.symbol, q.name, _fmt(q.price), _fmt(q.change_percent, "%"))
    Console().print(table)


def cmd_cache(args: argparse.Namespace) -> None:
    config = AppConfig.from_env()
    store = CacheStore(config.cache.path, ttl_ms=config.cache.ttl_ms)
    try:
        removed = store.clear() if args.action == "clear" else store.purge_expired()
    finally:
        store.close()
    Console().print(f"Removed {removed} cache entries from {config.cache.path}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tangen")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(required=True)

    rec = sub.add_parser("recommend", help="Score and rank ticker symbols")
    rec.add_argument("symbols", nargs="+", help="Ticker symbols, e.g. AAPL MSFT")
    rec.add_argument("--horizon", default=SHORT_TERM, choices=[SHORT_TERM, LONG_TERM])
    rec.add_argument("--market-provider", choices=["yfinance", "yahoo", "mock"], default=None)
    rec.add_argument("--signals", default=None, help="Comma list of news,articles,social or mock / none")
    rec.add_argument("--sentiment", choices=["lexicon", "huggingface"], default=None)
    rec.add_argument("--rationale", choices=["template", "llm"], default=None)
    rec.add_argument("--json", action="store_true", help="Print the raw response envelope")
    rec.add_argument("--save", default=None, metavar="DIR", help="Write the response to a JSON file in DIR")
    rec.set_defaults(func=cmd_recommend)

    search = sub.add_parser("search", help="Search equities by name or symbol")
    search.add_argument("query")
    search.set_defaults(func=cmd_search)

    movers = sub.add_parser("movers", help="Show day gainers, losers or hot stocks")
    movers.add_argument("kind", nargs="?", default="hot", choices=["gainers", "losers", "hot"])
    movers.set_defaults(func=cmd_movers)

    cache = sub.add_parser("cache", help="Maintain the local signal cache")
    cache.add_argument("action", choices=["purge", "clear"])
    cache.set_defaults(func=cmd_cache)
    return parser


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    _setup_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
