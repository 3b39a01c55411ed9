# =============================================================================
# src/cli/__init__.py - CLI Module Overview
# =============================================================================
#
# Command-line tools for operators.  The CLI builds the same components
# as the web server (src.main.build_components) and runs one command
# against them:
#
#   init-db   create the SQLite tables
#   discover  run discovery for one user (debugging)
#   weekly    the scheduled generate+send job, suitable for cron
#
# All commands use argparse.  src.main is imported lazily inside the
# command runner so ``--help`` stays fast.
# =============================================================================

"""CLI tools for the event digest service.

- ``python -m src.cli init-db``
- ``python -m src.cli discover --user-id N``
- ``python -m src.cli weekly``
"""
