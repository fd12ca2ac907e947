# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 FreshCheck Contributors
"""
FreshCheck CLI Module

Command-line access to the engine's diagnostic actions.

Commands:
- classify <query>: Truth-type classification
- route <query> [--mode M]: Claim type and source hierarchy
- fingerprint <query>: Cache key for a query
- cache-get / cache-set / cache-invalidate / cache-stats / cache-clear
- lookup <query>: Full freshness-aware lookup (network)
- enforce <response> --metadata JSON: Doctrine gates

Usage:
    python -m freshcheck_cli classify "What is the current price of Bitcoin?"
    python -m freshcheck_cli lookup "bitcoin price today" --json
    python -m freshcheck_cli enforce "Some answer" --metadata '{"confidence": 0.3}'
"""

from freshcheck_cli.diagnose_cmd import main

__all__ = ["main"]

if __name__ == "__main__":
    main()
