"""
Token Maintenance Workflow.

Refreshes OAuth tokens that are about to expire, then prunes rotated tokens
and expired Cloudflare challenges.

Designed to be run on a schedule (e.g., every 10 minutes via Temporal cron).
Every activity is idempotent, so a retried or overlapping run is harmless.
"""

from datetime import timedelta

from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from src.jupiter.temporal.activities import (
        cleanup_expired_challenges,
        cleanup_rotated_tokens,
        refresh_expiring_tokens,
    )

ACTIVITY_TIMEOUT = timedelta(minutes=5)
RETRY_POLICY = RetryPolicy(
    maximum_attempts=3,
    initial_interval=timedelta(seconds=2),
)


@workflow.defn
class TokenMaintenanceWorkflow:
    @workflow.run
    async def run(self, retention_days: int = 30, window_minutes: int = 30) -> dict[str, int]:
        """
        Run all maintenance activities.

        Args:
            retention_days: Days to keep rotated tokens
            window_minutes: Refresh active tokens expiring within this window

        Returns:
            dict with refresh counts plus rotated_tokens and challenges deleted
        """
        workflow.logger.info(
            f"Starting token maintenance (retention: {retention_days} days, "
            f"window: {window_minutes} minutes)"
        )

        refresh_counts = await workflow.execute_activity(
            refresh_expiring_tokens,
            window_minutes,
            start_to_close_timeout=ACTIVITY_TIMEOUT,
            retry_policy=RETRY_POLICY,
        )

        # Cleanups are independent of each other
        rotated_task = workflow.execute_activity(
            cleanup_rotated_tokens,
            retention_days,
            start_to_close_timeout=ACTIVITY_TIMEOUT,
            retry_policy=RETRY_POLICY,
        )
        challenges_task = workflow.execute_activity(
            cleanup_expired_challenges,
            start_to_close_timeout=ACTIVITY_TIMEOUT,
            retry_policy=RETRY_POLICY,
        )

        result = {
            **refresh_counts,
            "rotated_tokens": await rotated_task,
            "challenges": await challenges_task,
        }

        workflow.logger.info(
            f"Token maintenance complete: {result['refreshed']} refreshed, "
            f"{result['failed']} failed, {result['rotated_tokens']} rotated tokens and "
            f"{result['challenges']} challenges deleted"
        )
        return result
