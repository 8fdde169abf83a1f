"""Idempotent resource reconciliation."""

from airbrx_deploy.reconcile.reconciler import Reconciler

__all__ = ["Reconciler"]
