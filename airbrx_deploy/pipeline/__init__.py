"""The deployment pipeline: preflight checks, sources, and the nine phases."""
