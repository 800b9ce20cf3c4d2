"""
Indexer command line.

    quotebot-index --input indexes/kaamelott.json --language french
    quotebot-index --input indexes/kaamelott.json --enrich indexes/kaamelott_next.json
    quotebot-index --name kaamelott --enrich indexes/kaamelott_next.json
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .enrichment import load_aliases
from .loader import read_quotes
from .pipeline import run_indexing
from ..config import settings
from ..core.errors import QuotebotError
from ..db import async_engine, init_models

logger = logging.getLogger("quotebot.indexer")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quotebot-index",
        description="Index a quote batch into a collection.",
    )
    parser.add_argument("--input", help="JSON batch replacing the whole collection")
    parser.add_argument("--enrich", help="JSON enrichment batch merged into the collection")
    parser.add_argument(
        "--name",
        help="Collection name (defaults to the input file name without extension)",
    )
    parser.add_argument(
        "--language",
        default=settings.default_language,
        help="Text search language of a new collection (default: %(default)s)",
    )
    parser.add_argument("--aliases", help="JSON object of extra character aliases")
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create missing tables before indexing",
    )
    return parser


async def _run(args: argparse.Namespace) -> int:
    quotes = None
    name = args.name

    if args.input:
        quotes, input_name = read_quotes(args.input)
        name = name or input_name

    enrichment = read_quotes(args.enrich)[0] if args.enrich else None

    if not name:
        logger.error("A collection name is required when no --input is given")
        return 2

    try:
        if args.init_db:
            await init_models()

        report = await run_indexing(
            name,
            language=args.language,
            quotes=quotes,
            enrichment=enrichment,
            aliases=load_aliases(args.aliases or settings.aliases_path),
        )
    finally:
        await async_engine.dispose()

    logger.info(
        "Collection indexed: %s (replaced=%s, updated=%d, inserted=%d)",
        report.collection,
        report.replaced,
        report.updated,
        report.inserted,
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    args = build_parser().parse_args(argv)
    if not args.input and not args.enrich:
        logger.error("Nothing to do: provide --input and/or --enrich")
        return 2

    try:
        return asyncio.run(_run(args))
    except QuotebotError as exc:
        logger.error("Indexing failed: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
