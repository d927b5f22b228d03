# =============================================================================
# src/cli/__init__.py - CLI Module Overview
# =============================================================================
#
# This package provides standalone command-line tools for ragdesk. Each
# submodule is a self-contained CLI utility that can be run directly via
# `python -m src.cli.<module>`.
#
# The CLI layer is the interface for operators who work with document
# databases outside of the HTTP API. It covers two workflows:
#
#   1. INGESTION (ingest.py)
#      Creates, extends, inspects and deletes document databases. Wraps
#      IngestionService (extract → chunk → embed → save) and EmbeddingStore.
#
#   2. CHAT (chat.py)
#      Interactive terminal chat. Runs the full ChatPipeline turn
#      (analyze → gate → transform → search → fuse → stream) and prints
#      tokens as they arrive, followed by the cited sources.
#
# Architecture Notes:
#   - All CLI modules use argparse for argument parsing (not Click/Typer)
#     to minimize external dependencies.
#   - The object graph comes from src.main.build_components, imported
#     inside main() so `--help` never touches provider SDKs.
#   - Logs go to stderr; results and streamed tokens go to stdout.
# =============================================================================

"""CLI tools for ragdesk.

Provides standalone command-line utilities:

- ``python -m src.cli.ingest`` — create, extend, inspect and delete
  document databases.
- ``python -m src.cli.chat`` — chat with a database in the terminal.
"""
