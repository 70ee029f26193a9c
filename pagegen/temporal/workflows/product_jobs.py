from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError, ApplicationError

with workflow.unsafe.imports_passed_through():
    from pagegen.config import settings
    from pagegen.temporal.activities.product_job_activities import (
        generate_product_copy_activity,
        record_job_result_activity,
        scrape_product_activity,
    )

JOB_ACTIVITY_TIMEOUT = timedelta(minutes=settings.JOB_ACTIVITY_TIMEOUT_MINUTES)
JOB_RETRY_POLICY = RetryPolicy(
    maximum_attempts=settings.JOB_MAX_ATTEMPTS,
    initial_interval=timedelta(seconds=settings.JOB_BACKOFF_INITIAL_SECONDS),
    backoff_coefficient=2.0,
)


@dataclass
class ScrapeProductInput:
    payload_id: str
    url: str


@dataclass
class GenerateProductCopyInput:
    payload_id: str
    metadata: Dict[str, Any]


def _failure_message(exc: ActivityError) -> str:
    cause = exc.__cause__
    if isinstance(cause, ApplicationError) and cause.message:
        return cause.message
    return str(cause or exc)


async def _record(
    payload_id: str,
    status: str,
    *,
    result: Optional[Dict[str, Any]] = None,
    error: Optional[str] = None,
) -> None:
    await workflow.execute_activity(
        record_job_result_activity,
        {"payload_id": payload_id, "status": status, "result": result, "error": error},
        start_to_close_timeout=timedelta(minutes=1),
        retry_policy=JOB_RETRY_POLICY,
    )


async def _generate_copy(payload_id: str, metadata: Dict[str, Any]) -> Dict[str, Any]:
    return await workflow.execute_activity(
        generate_product_copy_activity,
        {"payload_id": payload_id, "metadata": metadata},
        start_to_close_timeout=JOB_ACTIVITY_TIMEOUT,
        retry_policy=JOB_RETRY_POLICY,
    )


async def _fail(payload_id: str, step: str, exc: ActivityError) -> ApplicationError:
    error = _failure_message(exc)
    workflow.logger.error(
        "product_jobs.step_failed",
        extra={"workflow_id": workflow.info().workflow_id, "payload_id": payload_id, "step": step, "error": error},
    )
    await _record(payload_id, "failed", error=error)
    # Fail the run so the same workflow id can be started again on retry.
    return ApplicationError(f"{step} step failed: {error}", type="ProductJobFailed", non_retryable=True)


@workflow.defn
class ScrapeProductWorkflow:
    @workflow.run
    async def run(self, input: ScrapeProductInput) -> Dict[str, Any]:
        try:
            metadata = await workflow.execute_activity(
                scrape_product_activity,
                {"payload_id": input.payload_id, "url": input.url},
                start_to_close_timeout=JOB_ACTIVITY_TIMEOUT,
                retry_policy=JOB_RETRY_POLICY,
            )
        except ActivityError as exc:
            raise await _fail(input.payload_id, "scrape", exc) from exc

        try:
            result = await _generate_copy(input.payload_id, metadata)
        except ActivityError as exc:
            raise await _fail(input.payload_id, "ai", exc) from exc

        await _record(input.payload_id, "completed", result=result)
        return result


@workflow.defn
class GenerateProductCopyWorkflow:
    @workflow.run
    async def run(self, input: GenerateProductCopyInput) -> Dict[str, Any]:
        try:
            result = await _generate_copy(input.payload_id, input.metadata)
        except ActivityError as exc:
            raise await _fail(input.payload_id, "ai", exc) from exc

        await _record(input.payload_id, "completed", result=result)
        return result
