from __future__ import annotations

import logging
from typing import Any
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session
from temporalio.client import Client, WorkflowHandle
from temporalio.common import WorkflowIDReusePolicy
from temporalio.exceptions import WorkflowAlreadyStartedError

from pagegen.config import settings
from pagegen.models import JobRecord
from pagegen.schemas import JobName, JobResponse
from pagegen.temporal.workflows.product_jobs import (
    GenerateProductCopyInput,
    GenerateProductCopyWorkflow,
    ScrapeProductInput,
    ScrapeProductWorkflow,
)

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = ("queued", "failed")


class JobNotFoundError(LookupError):
    def __init__(self, payload_id: str) -> None:
        super().__init__(f"Job not found for payloadId: {payload_id}")
        self.payload_id = payload_id


class JobConflictError(RuntimeError):
    pass


def workflow_id_for(name: str, payload_id: str) -> str:
    return f"{name}-{payload_id}"


def get_job(session: Session, payload_id: str) -> JobRecord | None:
    return session.scalars(select(JobRecord).where(JobRecord.payload_id == payload_id)).first()


def serialize_job(record: JobRecord) -> JobResponse:
    return JobResponse(
        payloadId=record.payload_id,
        name=record.name,
        status=record.status,
        workflowId=record.workflow_id,
        attempts=record.attempts,
        result=record.result,
        error=record.error,
        createdAt=record.created_at,
        updatedAt=record.updated_at,
    )


async def _start_workflow(
    client: Client,
    record: JobRecord,
    *,
    id_reuse_policy: WorkflowIDReusePolicy | None = None,
) -> WorkflowHandle:
    if record.name == "scrape":
        run = ScrapeProductWorkflow.run
        arg: Any = ScrapeProductInput(payload_id=record.payload_id, url=record.data["url"])
    else:
        run = GenerateProductCopyWorkflow.run
        arg = GenerateProductCopyInput(payload_id=record.payload_id, metadata=record.data["metadata"])

    kwargs: dict[str, Any] = {"id": record.workflow_id, "task_queue": settings.TEMPORAL_TASK_QUEUE}
    if id_reuse_policy is not None:
        kwargs["id_reuse_policy"] = id_reuse_policy
    try:
        return await client.start_workflow(run, arg, **kwargs)
    except WorkflowAlreadyStartedError as exc:
        raise JobConflictError(f"Job {record.payload_id} is already running.") from exc


async def schedule_job(
    session: Session,
    client: Client,
    *,
    name: JobName,
    data: dict[str, Any],
    payload_id: str | None = None,
) -> JobRecord:
    payload_id = (payload_id or str(data.get("payloadId") or "")).strip() or uuid4().hex
    if get_job(session, payload_id) is not None:
        raise JobConflictError(f"A job already exists for payloadId: {payload_id}")

    record = JobRecord(
        payload_id=payload_id,
        name=name,
        status="queued",
        workflow_id=workflow_id_for(name, payload_id),
        attempts=1,
        data={**data, "payloadId": payload_id},
    )
    session.add(record)
    session.commit()
    session.refresh(record)

    try:
        handle = await _start_workflow(client, record)
    except Exception as exc:
        record.status = "failed"
        record.error = str(exc)
        session.commit()
        logger.exception("jobs.start_failed", extra={"payload_id": payload_id, "job_name": name})
        raise

    logger.info(
        "jobs.scheduled",
        extra={"payload_id": payload_id, "job_name": name, "workflow_id": handle.id},
    )
    return record


async def retry_job(session: Session, client: Client, payload_id: str) -> JobRecord:
    record = get_job(session, payload_id)
    if record is None or record.status not in RETRYABLE_STATUSES:
        raise JobNotFoundError(payload_id)

    await _start_workflow(
        client,
        record,
        id_reuse_policy=WorkflowIDReusePolicy.ALLOW_DUPLICATE_FAILED_ONLY,
    )
    record.attempts += 1
    record.status = "queued"
    record.error = None
    session.commit()
    session.refresh(record)
    logger.info("jobs.retried", extra={"payload_id": payload_id, "attempts": record.attempts})
    return record
