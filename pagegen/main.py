import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse, Response
from sqlalchemy.orm import Session

from pagegen.config import settings
from pagegen.db import get_session, init_db
from pagegen.observability import initialize_langfuse, shutdown_langfuse
from pagegen.schemas import (
    CreateJobRequest,
    ExportRequest,
    GenerateCopyRequest,
    GeneratedCopyResult,
    JobResponse,
    PreviewModel,
    ScrapeRequest,
)
from pagegen.security import require_internal_api_token
from pagegen.services.copy_writer import generate_legacy_copy, generate_structured_copy
from pagegen.services.export import ExportError, build_export_document, build_preview, export_filename
from pagegen.services.jobs import (
    JobConflictError,
    JobNotFoundError,
    get_job,
    retry_job,
    schedule_job,
    serialize_job,
)
from pagegen.services.notifications import NotificationService
from pagegen.services.scraper import ScrapeError, scrape_product
from pagegen.temporal.client import get_temporal_client

logger = logging.getLogger(__name__)

_SCRAPED_FIELDS = {"title", "description", "price", "images"}


@asynccontextmanager
async def _app_lifespan(app: FastAPI) -> AsyncIterator[None]:
    init_db()
    initialize_langfuse()
    notifications = NotificationService()
    app.state.notifications = notifications
    try:
        yield
    finally:
        notifications.close()
        shutdown_langfuse()


def _message(status_code: int, message: str) -> ORJSONResponse:
    return ORJSONResponse(status_code=status_code, content={"message": message})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Product Page Generator API",
        default_response_class=ORJSONResponse,
        lifespan=_app_lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=sorted(set(settings.BACKEND_CORS_ORIGINS)),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ScrapeError)
    async def scrape_error_handler(_request: Request, exc: ScrapeError) -> ORJSONResponse:
        logger.warning("api.scrape_failed", extra={"status_code": exc.status_code, "error": exc.message})
        return _message(exc.status_code, exc.message)

    @app.exception_handler(ExportError)
    async def export_error_handler(_request: Request, exc: ExportError) -> ORJSONResponse:
        return _message(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(JobNotFoundError)
    async def job_not_found_handler(_request: Request, exc: JobNotFoundError) -> ORJSONResponse:
        return _message(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(JobConflictError)
    async def job_conflict_handler(_request: Request, exc: JobConflictError) -> ORJSONResponse:
        return _message(status.HTTP_409_CONFLICT, str(exc))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"detail": "Internal server error."})

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.post("/api/scrape")
    async def scrape(payload: ScrapeRequest) -> Any:
        if not payload.url.strip():
            return _message(status.HTTP_400_BAD_REQUEST, 'A valid "url" is required.')
        product = await scrape_product(payload.url)
        return product.model_dump(mode="json", include=_SCRAPED_FIELDS)

    @app.post("/api/generate-copy")
    async def generate_copy(payload: GenerateCopyRequest, request: Request) -> Any:
        prompt = payload.prompt.strip()
        if not prompt:
            return _message(status.HTTP_400_BAD_REQUEST, 'A non-empty "prompt" is required.')

        if payload.product is None:
            legacy = await generate_legacy_copy(prompt)
            return legacy.model_dump(mode="json", by_alias=True)

        structured = await generate_structured_copy(payload.product, prompt)
        if structured.source == "fallback":
            request.app.state.notifications.add("AI copy unavailable, served fallback content.", "warning")
        return structured.model_dump(mode="json")

    @app.get("/api/notifications")
    async def list_notifications(request: Request) -> list[dict[str, str]]:
        return [
            {"id": item.id, "message": item.message, "type": item.type}
            for item in request.app.state.notifications.notifications
        ]

    @app.post("/api/preview", response_model=PreviewModel)
    async def preview(result: GeneratedCopyResult) -> PreviewModel:
        return build_preview(result)

    @app.post("/api/export")
    async def export(payload: ExportRequest) -> Response:
        document = build_export_document(payload.html, payload.title)
        filename = export_filename(payload.title, payload.filename)
        return Response(
            content=document,
            media_type="text/html; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.post(
        "/api/jobs",
        response_model=JobResponse,
        status_code=status.HTTP_202_ACCEPTED,
        dependencies=[Depends(require_internal_api_token)],
    )
    async def create_job(payload: CreateJobRequest, session: Session = Depends(get_session)) -> JobResponse:
        client = await get_temporal_client()
        record = await schedule_job(
            session,
            client,
            name=payload.name,
            data=payload.data,
            payload_id=payload.payloadId,
        )
        return serialize_job(record)

    @app.get(
        "/api/jobs/{payload_id}",
        response_model=JobResponse,
        dependencies=[Depends(require_internal_api_token)],
    )
    def read_job(payload_id: str, session: Session = Depends(get_session)) -> JobResponse:
        record = get_job(session, payload_id)
        if record is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")
        return serialize_job(record)

    @app.post(
        "/api/jobs/{payload_id}/retry",
        response_model=JobResponse,
        dependencies=[Depends(require_internal_api_token)],
    )
    async def retry(payload_id: str, session: Session = Depends(get_session)) -> JobResponse:
        client = await get_temporal_client()
        record = await retry_job(session, client, payload_id)
        return serialize_job(record)

    return app


app = create_app()
