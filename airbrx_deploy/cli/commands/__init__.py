"""Subcommand implementations for the ``airbrx-deploy`` CLI."""
