"""Allow ``python -m src.cli`` execution."""

from src.cli.digest import main

main()
