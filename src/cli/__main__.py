"""Allow ``python -m src.cli`` execution; runs the compare command."""

from src.cli.compare import main

main()
