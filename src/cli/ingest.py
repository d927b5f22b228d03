# =============================================================================
# src/cli/ingest.py - CLI Ingest Command (Document Database Management)
# =============================================================================
#
# Standalone CLI for managing ragdesk document databases. A database is a
# named FAISS index of chunks from local files (text, markdown, code,
# notebooks, PDF, Word, HTML, JSON, CSV, Excel), registered in
# <data_dir>/databases/registry.json.
#
# Supported subcommands:
#
#   create      - Create a database from files and directories (strict)
#   add         - Add or refresh documents in a database (best effort)
#   delete-doc  - Remove one document and exactly its chunks
#   delete      - Delete a whole database
#   list        - List registered databases
#   docs        - List the documents of a database
#   search      - Run a raw vector search against a database
#
# Provider Selection:
#   Same as the API server: EMBEDDING_VENDOR picks the embedding adapter,
#   LLM_VENDOR the chat adapter used for document titles.
#
# Usage examples:
#   python -m src.cli.ingest create --name manuals --description "Product manuals" ./docs
#   python -m src.cli.ingest add --name manuals ./docs/new.pdf
#   python -m src.cli.ingest docs --name manuals
#   python -m src.cli.ingest search --name manuals --k 5 how do I reset the device
#   python -m src.cli.ingest delete --name manuals --yes
# =============================================================================

"""Standalone CLI for building and maintaining ragdesk document databases.

Usage::

    python -m src.cli.ingest create --name N --description D PATH...
    python -m src.cli.ingest add --name N PATH...
    python -m src.cli.ingest delete-doc --name N --doc DOC
    python -m src.cli.ingest delete --name N --yes
    python -m src.cli.ingest list
    python -m src.cli.ingest docs --name N
    python -m src.cli.ingest search --name N --k K QUERY...
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any

from src.config.settings import Settings
from src.utils.errors import RagDeskError
from src.utils.logging import configure_logging


def _build_components(app_settings: Settings) -> dict[str, Any]:
    """Construct the same object graph as the API server.

    Imports are deferred so ``--help`` stays fast.
    """
    from src.main import build_components

    return build_components(app_settings)


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_create(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Create a database; nothing is saved if any file fails."""
    print(f"Creating database: {args.name}")
    database_id = await components["ingestion"].create_database(
        args.name,
        args.description,
        args.paths,
        chunk_size=args.chunk_size,
        overlap_percent=args.overlap,
        progress=lambda message: print(f"  {message}"),
    )
    print("\nDatabase created:")
    print(f"  Name: {args.name}")
    print(f"  ID:   {database_id}")
    return 0


async def _handle_add(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Add documents; failures are listed but do not stop the others."""
    print(f"Adding documents to: {args.name}")
    result = await components["ingestion"].add_documents(
        args.name,
        args.paths,
        chunk_size=args.chunk_size,
        overlap_percent=args.overlap,
        progress=lambda message: print(f"  {message}"),
        description=args.description,
    )
    print(f"\n{result.message}")
    for line in result.log:
        print(f"  {line}")
    return 0 if result.success else 2


async def _handle_delete_doc(args: argparse.Namespace, components: dict[str, Any]) -> int:
    removed = await components["store"].delete_document(args.name, args.doc)
    if removed == 0:
        print(f"Document not found in {args.name}: {args.doc}")
        return 1
    print(f"Removed {args.doc} ({removed} chunks) from {args.name}")
    return 0


async def _handle_delete(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Delete a database.

    This is a destructive operation; it requires confirmation unless
    --yes is passed.
    """
    store = components["store"]
    if not store.exists(args.name):
        print(f"Database not found: {args.name}", file=sys.stderr)
        return 1
    if not args.yes:
        confirm = input(f"  Delete database '{args.name}'? [y/N] ").strip().lower()
        if confirm not in ("y", "yes"):
            print("  Aborted.")
            return 0
    await store.delete(args.name)
    print(f"Deleted database: {args.name}")
    return 0


async def _handle_list(components: dict[str, Any]) -> int:
    databases = components["store"].list_databases()
    if not databases:
        print("No databases.")
        return 0
    print("Databases")
    print("=" * 40)
    for info in databases:
        print(f"  {info.name:<20} {info.id}  {info.description}")
    return 0


async def _handle_docs(args: argparse.Namespace, components: dict[str, Any]) -> int:
    documents = await components["store"].list_documents(args.name)
    print(f"Documents in {args.name}: {len(documents)}")
    for doc in documents:
        print(f"  {doc.name:<30} {doc.chunk_count:>5} chunks  {doc.path}")
    return 0


async def _handle_search(args: argparse.Namespace, components: dict[str, Any]) -> int:
    query = " ".join(args.query)
    results = await components["store"].search(args.name, query, args.k)
    for rank, result in enumerate(results, start=1):
        source = result.metadata.get("source", "")
        preview = result.page_content[:200].replace("\n", " ")
        print(f"{rank:>2}. [{result.score:.4f}] {source}")
        print(f"    {preview}")
    if not results:
        print("No results.")
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _add_chunking_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--chunk-size", type=int, default=None, dest="chunk_size",
        help="Chunk size in tokens (default: CHUNK_SIZE setting)",
    )
    parser.add_argument(
        "--overlap", type=float, default=None,
        help="Chunk overlap in percent (default: CHUNK_OVERLAP_PERCENT setting)",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ingestion CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.ingest",
        description="Manage ragdesk document databases.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Database commands")

    # -- create --
    create_parser = subparsers.add_parser("create", help="Create a database from files")
    create_parser.add_argument("--name", required=True, help="Database name")
    create_parser.add_argument("--description", default="", help="Database description")
    create_parser.add_argument("paths", nargs="+", help="Files or directories")
    _add_chunking_args(create_parser)

    # -- add --
    add_parser = subparsers.add_parser("add", help="Add or refresh documents")
    add_parser.add_argument("--name", required=True, help="Database name")
    add_parser.add_argument("--description", default=None, help="Replace the description")
    add_parser.add_argument("paths", nargs="+", help="Files or directories")
    _add_chunking_args(add_parser)

    # -- delete-doc --
    delete_doc_parser = subparsers.add_parser("delete-doc", help="Remove one document")
    delete_doc_parser.add_argument("--name", required=True, help="Database name")
    delete_doc_parser.add_argument("--doc", required=True, help="Document path as listed by 'docs'")

    # -- delete --
    delete_parser = subparsers.add_parser("delete", help="Delete a database")
    delete_parser.add_argument("--name", required=True, help="Database name")
    delete_parser.add_argument(
        "--yes", "-y", action="store_true", help="Skip confirmation prompt"
    )

    # -- list --
    subparsers.add_parser("list", help="List databases")

    # -- docs --
    docs_parser = subparsers.add_parser("docs", help="List documents of a database")
    docs_parser.add_argument("--name", required=True, help="Database name")

    # -- search --
    search_parser = subparsers.add_parser("search", help="Raw vector search")
    search_parser.add_argument("--name", required=True, help="Database name")
    search_parser.add_argument("--k", type=int, default=6, help="Number of results (default: 6)")
    search_parser.add_argument("query", nargs="+", help="Query text")

    return parser


async def _dispatch(args: argparse.Namespace, components: dict[str, Any]) -> int:
    try:
        if args.command == "create":
            return await _handle_create(args, components)
        if args.command == "add":
            return await _handle_add(args, components)
        if args.command == "delete-doc":
            return await _handle_delete_doc(args, components)
        if args.command == "delete":
            return await _handle_delete(args, components)
        if args.command == "list":
            return await _handle_list(components)
        if args.command == "docs":
            return await _handle_docs(args, components)
        if args.command == "search":
            return await _handle_search(args, components)
        return 1
    except RagDeskError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        await components["http_client"].aclose()


def main(argv: list[str] | None = None) -> None:
    """CLI entry point: parse args, build services, run the subcommand."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    configure_logging(log_level=app_settings.log_level, stream=sys.stderr)

    components = _build_components(app_settings)
    sys.exit(asyncio.run(_dispatch(args, components)))


if __name__ == "__main__":
    main()
