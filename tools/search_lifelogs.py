from __future__ import annotations

"""CLI utility to index a directory of lifelog JSON files and run one query."""

import argparse
import json
import logging
from pathlib import Path

from lifesearch.app.dependencies import build_embedder, build_search_config
from lifesearch.app.settings import settings
from lifesearch.loaders.lifelogs import JsonDirectoryDocumentSource
from lifesearch.search.pipeline import SearchEngine


def main() -> None:
    """Build an index from lifelog files and print the search bundle as JSON."""
    parser = argparse.ArgumentParser(description="Search lifelog transcripts.")
    parser.add_argument("query", help="Natural-language query.")
    parser.add_argument(
        "--data-dir",
        default=settings.data_dir,
        help="Directory with lifelog *.json files.",
    )
    parser.add_argument("--limit", type=int, default=5, help="Results to print.")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with an error if any strategy timed out or failed.",
    )
    parser.add_argument("--verbose", action="store_true", help="Log search events.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    if not args.data_dir:
        raise SystemExit("Set LIFESEARCH_DATA_DIR or pass --data-dir")
    directory = Path(args.data_dir)
    if not directory.is_dir():
        raise SystemExit(f"Not a directory: {directory}")

    engine = SearchEngine(config=build_search_config(), embedder=build_embedder())
    engine.build_index(JsonDirectoryDocumentSource(directory).list_all())
    bundle = engine.search(args.query)
    if args.strict:
        for outcome in bundle.outcomes.values():
            outcome.raise_for_status()

    payload = bundle.to_dict()
    payload["results"] = payload["results"][: args.limit]
    print(json.dumps(payload, indent=2))


if __name__ == "__main__":
    main()
