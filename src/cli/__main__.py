# =============================================================================
# src/cli/__main__.py - Package Entry Point
# =============================================================================
#
# This file enables running the CLI package itself as a module:
#     python -m src.cli
#
# It delegates to the ingestion CLI (ingest.py), since database management
# is the most common CLI operation. For the chat loop run:
#     python -m src.cli.chat --db <name>
# =============================================================================

"""Allow ``python -m src.cli`` execution."""

from src.cli.ingest import main

main()
