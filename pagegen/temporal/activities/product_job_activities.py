from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Any, Dict, Iterator

from sqlalchemy import select
from sqlalchemy.orm import Session
from temporalio import activity
from temporalio.exceptions import ApplicationError

from pagegen.config import settings
from pagegen.db import SessionLocal
from pagegen.llm.client import LLMClient, LLMClientConfigError, LLMGenerationParams
from pagegen.models import JobRecord
from pagegen.security import is_domain_allowed, url_hostname, validate_http_url
from pagegen.services.scraper import ScrapeError, scrape_product

AI_PROMPT_TEMPLATE = (
    "Generate an SEO-optimized product page title and description based on the following metadata:\n{metadata}"
)
AI_MAX_TOKENS = 500
AI_TEMPERATURE = 0.7
_METADATA_FIELDS = ("title", "description", "price", "images", "url")


@contextmanager
def _session() -> Iterator[Session]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@activity.defn
async def scrape_product_activity(params: Dict[str, Any]) -> Dict[str, Any]:
    payload_id = params["payload_id"]
    raw_url = params.get("url") or ""

    url = validate_http_url(raw_url)
    if not url:
        raise ApplicationError(f"Invalid URL: {raw_url}", type="InvalidUrl", non_retryable=True)
    if not is_domain_allowed(url, settings.SCRAPE_ALLOWED_DOMAINS):
        raise ApplicationError(
            f"Domain not allowed: {url_hostname(url)}",
            type="DomainNotAllowed",
            non_retryable=True,
        )

    activity.logger.info("product_jobs.scrape.start", extra={"payload_id": payload_id, "url": url})
    try:
        product = await scrape_product(url)
    except ScrapeError as exc:
        raise ApplicationError(
            exc.message,
            type="ScrapeFailed",
            non_retryable=400 <= exc.status_code < 500,
        ) from exc

    metadata = product.model_dump(mode="json", include=set(_METADATA_FIELDS))
    activity.logger.info(
        "product_jobs.scrape.done",
        extra={"payload_id": payload_id, "image_count": len(metadata.get("images") or [])},
    )
    return metadata


def build_metadata_prompt(metadata: Dict[str, Any]) -> str:
    return AI_PROMPT_TEMPLATE.format(metadata=json.dumps(metadata, ensure_ascii=False))


@activity.defn
def generate_product_copy_activity(params: Dict[str, Any]) -> Dict[str, Any]:
    payload_id = params["payload_id"]
    metadata = params.get("metadata")
    if not isinstance(metadata, dict):
        raise ApplicationError("metadata must be an object", type="InvalidMetadata", non_retryable=True)

    client = LLMClient()
    llm_params = LLMGenerationParams(
        model=client.default_model,
        max_tokens=AI_MAX_TOKENS,
        temperature=AI_TEMPERATURE,
    )
    activity.logger.info("product_jobs.ai.start", extra={"payload_id": payload_id, "model": llm_params.model})
    try:
        text = client.generate_text(build_metadata_prompt(metadata), llm_params)
    except LLMClientConfigError as exc:
        raise ApplicationError(str(exc), type="LLMNotConfigured", non_retryable=True) from exc

    return {"metadata": metadata, "copy": text.strip(), "model": llm_params.model}


@activity.defn
def record_job_result_activity(params: Dict[str, Any]) -> None:
    payload_id = params["payload_id"]
    status = params["status"]
    with _session() as session:
        record = session.scalars(select(JobRecord).where(JobRecord.payload_id == payload_id)).first()
        if record is None:
            raise ApplicationError(
                f"Job not found for payloadId: {payload_id}",
                type="JobNotFound",
                non_retryable=True,
            )
        record.status = status
        record.result = params.get("result")
        record.error = params.get("error")
        session.commit()

    log = activity.logger.info if status == "completed" else activity.logger.error
    log("product_jobs.recorded", extra={"payload_id": payload_id, "status": status})
