"""Airbrx deployer CLI — Typer-based command-line interface.

Provides the ``airbrx-deploy`` command with subcommands for generating a
deployment's configuration, deploying it, inspecting it, and tearing it
down.

All output uses Rich for formatted terminal display.
"""
