"""agentic-container CLI — Typer-based command-line interface.

Provides the ``agentic-container`` command with subcommands for building
stages, validating images, opening shells, sweeping PR tags, computing
tags and running the size and Renovate checks.

All output uses Rich for formatted terminal display.
"""
