"""Terminal client that reuses the in-process hybrid search and importer."""
from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from time import perf_counter
from typing import Iterable

from catalog_assistant.es_client import get_client
from catalog_assistant.importer import import_catalog, reindex_catalog
from catalog_assistant.models import SearchResult
from catalog_assistant.search import get_engine

MAX_RESULTS = 50
GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"


async def perform_query(query: str, limit: int) -> tuple[list[SearchResult], float]:
    t0 = perf_counter()
    results = await get_engine().search_products(query, limit)
    return results, (perf_counter() - t0) * 1000


def pretty_print_response(query: str, results: list[SearchResult], took_ms: float) -> None:
    color = GREEN if took_ms < 1000 else RED
    print(f"Query: {query} | results: {len(results)} | took: {color}{took_ms:.1f} ms{RESET}")
    for idx, item in enumerate(results, start=1):
        print(
            f"  {idx:02d}. {item.similarity:.3f} | {item.matchType.value:<17} | "
            f"{item.productCode} | {item.name}"
        )


def run_query(query: str, limit: int) -> None:
    results, took_ms = asyncio.run(perform_query(query, limit))
    pretty_print_response(query, results, took_ms)


def interactive_shell(limit: int) -> None:
    print("Interactive catalog search. Type 'exit' to quit.")
    while True:
        try:
            query = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return
        if not query:
            continue
        if query.lower() in {"exit", "quit"}:
            return
        run_query(query, limit)


def batch_mode(file_path: Path, limit: int) -> None:
    with file_path.open("r", encoding="utf-8") as fh:
        for line in fh:
            query = line.strip()
            if query:
                run_query(query, limit)


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CLI client for the catalog assistant")
    parser.add_argument("query", nargs="?", help="Query string. If omitted, starts REPL mode.")
    parser.add_argument("--batch", type=Path, help="File with queries to execute line by line")
    parser.add_argument("--limit", type=int, default=10, help=f"Results per query (max {MAX_RESULTS})")
    parser.add_argument("--import", dest="import_path", type=Path, help="Catalog JSON file to embed and index")
    parser.add_argument("--reindex", action="store_true", help="Drop the index before importing")
    args = parser.parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    limit = max(1, min(args.limit, MAX_RESULTS))

    if args.import_path:
        loader = reindex_catalog if args.reindex else import_catalog
        count = asyncio.run(loader(get_client(), args.import_path))
        print(f"Indexed {count} products from {args.import_path}")
        return 0 if count else 1
    if args.batch:
        batch_mode(args.batch, limit)
        return 0
    if args.query:
        run_query(args.query, limit)
        return 0
    interactive_shell(limit)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
