"""Command-line tools for the Dual LLM service.

- ``python -m src.cli.compare`` sends one prompt to several providers and
  prints their answers, streamed or all at once.
"""
