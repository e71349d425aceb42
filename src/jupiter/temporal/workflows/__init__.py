"""Temporal Workflows - Re-exports for worker registration."""

from src.jupiter.temporal.workflows.token_maintenance import TokenMaintenanceWorkflow

__all__ = ["TokenMaintenanceWorkflow"]
