"""Command-line utilities for the knowledge retrieval engine."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from knowledge_retrieval.exceptions import RetrievalError, ValidationError
from knowledge_retrieval.services.retrieval_service import RetrievalService

SNIPPET_CHARS = 200


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Utilities for the Knowledge Retrieval Engine")
    parser.add_argument("--verbose", action="store_true", help="Log indexing and ranking details")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Add text files to a snapshot")
    ingest.add_argument("paths", nargs="+", type=Path, help="Text files to ingest (title = file name)")
    ingest.add_argument("--snapshot", required=True, type=Path, help="Snapshot file to create or extend")
    ingest.add_argument(
        "--tag",
        action="append",
        dest="tags",
        default=None,
        help="Repeatable tag applied to every ingested document",
    )

    query = subparsers.add_parser("query", help="Search a snapshot")
    query.add_argument("text", help="Search query")
    query.add_argument("--snapshot", required=True, type=Path)
    query.add_argument("--k", type=int, default=None, help="Maximum number of results")
    query.add_argument("--threshold", type=float, default=None, help="Minimum relevance in [0, 1]")
    query.add_argument("--jsonl", action="store_true", help="Emit one JSON object per result")

    stats = subparsers.add_parser("stats", help="Summarize a snapshot")
    stats.add_argument("--snapshot", required=True, type=Path)

    return parser


def _run_ingest(args: argparse.Namespace) -> int:
    if args.snapshot.exists():
        service = RetrievalService.load_snapshot(args.snapshot)
    else:
        service = RetrievalService()

    metadata: Dict[str, Any] = {"tags": list(args.tags)} if args.tags else {}
    items = []
    for path in args.paths:
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            print(f"Unable to read {path}: {exc}", file=sys.stderr)
            return 1
        items.append({"title": path.stem, "content": content, "metadata": {**metadata, "source": str(path)}})

    try:
        documents = service.add_documents(items)
    except ValidationError as exc:
        print(f"Invalid document: {exc}", file=sys.stderr)
        return 1

    service.save_snapshot(args.snapshot)
    print(f"Ingested {len(documents)} documents into {args.snapshot} ({len(service)} total)")
    return 0


def _run_query(args: argparse.Namespace) -> int:
    service = RetrievalService.load_snapshot(args.snapshot)
    results = service.search(args.text, top_k=args.k, threshold=args.threshold)

    if args.jsonl:
        for rank, result in enumerate(results, start=1):
            print(
                json.dumps(
                    {
                        "rank": rank,
                        "document_id": result.document.id,
                        "title": result.document.title,
                        "chunk_id": result.chunk.id,
                        "score": round(result.score, 6),
                        "relevance": round(result.relevance, 6),
                        "reason": result.relevance_reason,
                        "snippet": result.chunk.content[:SNIPPET_CHARS],
                    },
                    ensure_ascii=False,
                )
            )
        return 0

    if not results:
        print("No matching documents.")
        return 0
    for rank, result in enumerate(results, start=1):
        reason = f" [{result.relevance_reason}]" if result.relevance_reason else ""
        print(
            f"{rank}. {result.document.title} "
            f"(relevance {result.relevance:.0%}, score {result.score:.3f}){reason}"
        )
        print(f"   {result.chunk.content[:SNIPPET_CHARS]}")
    return 0


def _run_stats(args: argparse.Namespace) -> int:
    stats = RetrievalService.load_snapshot(args.snapshot).stats()
    print(f"Documents: {stats.document_count}")
    print(f"Chunks: {stats.chunk_count}")
    print(f"Tokens: {stats.total_tokens}")
    print(f"Average chunk length: {stats.average_chunk_length:.1f}")
    print(f"Tags: {', '.join(stats.tags) if stats.tags else '-'}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    commands: Dict[str, Callable[[argparse.Namespace], int]] = {
        "ingest": _run_ingest,
        "query": _run_query,
        "stats": _run_stats,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.error("Unknown command")
        return 1

    try:
        return handler(args)
    except RetrievalError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
