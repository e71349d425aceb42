"""
Temporal Worker - Separate process from API.

Run with:
    uv run python -m src.jupiter.temporal.worker
"""

import asyncio

import uvicorn
from fastapi import FastAPI
from temporalio.client import Client
from temporalio.exceptions import WorkflowAlreadyStartedError
from temporalio.worker import Worker

from src.jupiter.core.config import get_settings
from src.jupiter.core.db import dispose_engine
from src.jupiter.core.logging import get_logger, setup_logging
from src.jupiter.temporal.activities import (
    cleanup_expired_challenges,
    cleanup_rotated_tokens,
    refresh_expiring_tokens,
)
from src.jupiter.temporal.client import get_temporal_client
from src.jupiter.temporal.workflows import TokenMaintenanceWorkflow

logger = get_logger(__name__)

WORKER_HEALTH_PORT = 8001
MAINTENANCE_WORKFLOW_ID = "token-maintenance"


def create_worker(client: Client, task_queue: str) -> Worker:
    return Worker(
        client,
        task_queue=task_queue,
        workflows=[TokenMaintenanceWorkflow],
        activities=[
            cleanup_expired_challenges,
            cleanup_rotated_tokens,
            refresh_expiring_tokens,
        ],
        max_concurrent_activities=50,
        max_concurrent_workflow_tasks=50,
    )


async def schedule_token_maintenance(client: Client) -> None:
    """Start the cron maintenance workflow if a schedule is configured."""
    settings = get_settings()
    if not settings.token_maintenance_schedule:
        return
    try:
        await client.start_workflow(
            TokenMaintenanceWorkflow.run,
            args=[settings.rotated_token_retention_days, settings.proactive_refresh_window_minutes],
            id=MAINTENANCE_WORKFLOW_ID,
            task_queue=settings.temporal_task_queue,
            cron_schedule=settings.token_maintenance_schedule,
        )
        logger.info("Scheduled token maintenance", cron=settings.token_maintenance_schedule)
    except WorkflowAlreadyStartedError:
        logger.info("Token maintenance already scheduled")


async def run_health_server(task_queue: str, port: int = WORKER_HEALTH_PORT) -> None:
    """Run a lightweight health server for K8s probes."""
    health_app = FastAPI(title="Temporal Worker Health")

    @health_app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy", "service": "temporal-worker", "task_queue": task_queue}

    @health_app.get("/ready")
    async def ready() -> dict[str, str]:
        return {"status": "ready"}

    config = uvicorn.Config(health_app, host="0.0.0.0", port=port, log_level="warning")
    server = uvicorn.Server(config)
    logger.info(f"Starting health server on port {port}")
    await server.serve()


async def main() -> None:
    settings = get_settings()
    setup_logging(settings.debug)

    client = await get_temporal_client()
    worker = create_worker(client, settings.temporal_task_queue)
    await schedule_token_maintenance(client)

    logger.info(f"Starting worker on queue: {settings.temporal_task_queue}")
    try:
        await asyncio.gather(worker.run(), run_health_server(settings.temporal_task_queue))
    finally:
        await dispose_engine()


if __name__ == "__main__":
    asyncio.run(main())
