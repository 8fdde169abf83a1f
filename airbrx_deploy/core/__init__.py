"""Deployment core — registry, dependency graph, orchestrator, builders."""
