from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from pagegen.schemas import GeneratedBlock, GeneratedCopyResult, MarketingFramework, ProductInput
from pagegen.services.copy_generation import build_fallback

logger = logging.getLogger(__name__)


class _StructuredShape(BaseModel):
    framework: MarketingFramework
    headline: str = Field(min_length=1)
    html: str = Field(min_length=1)
    blocks: list[GeneratedBlock] = Field(min_length=1)
    subheadline: str | None = None
    synopsis: str | None = None


@dataclass(frozen=True)
class StructuredPayload:
    framework: MarketingFramework
    headline: str
    html: str
    blocks: list[GeneratedBlock]
    subheadline: str | None = None
    synopsis: str | None = None


@dataclass(frozen=True)
class LegacyTextPayload:
    copy: str


@dataclass(frozen=True)
class UnrecognizedPayload:
    reason: str


RemotePayload = StructuredPayload | LegacyTextPayload | UnrecognizedPayload


def classify_payload(response: Any) -> RemotePayload:
    if not isinstance(response, Mapping):
        return UnrecognizedPayload(reason=f"payload is {type(response).__name__}, not an object")

    try:
        shape = _StructuredShape.model_validate(dict(response))
    except ValidationError as exc:
        structured_error = f"{exc.error_count()} structured field error(s)"
    else:
        return StructuredPayload(
            framework=shape.framework,
            headline=shape.headline,
            html=shape.html,
            blocks=shape.blocks,
            subheadline=shape.subheadline,
            synopsis=shape.synopsis,
        )

    copy = response.get("copy")
    if isinstance(copy, str):
        return LegacyTextPayload(copy=copy)
    return UnrecognizedPayload(reason=f"no copy text and {structured_error}")


def normalize(response: Any, product: ProductInput, prompt: str) -> GeneratedCopyResult:
    """
    Reconcile a copy-service response with the result shape the preview expects.

    Structured payloads are trusted as-is once the required fields are present.
    Plain-text copy only seeds the local builder, and anything else falls back to
    the original prompt.
    """
    match classify_payload(response):
        case StructuredPayload() as payload:
            return GeneratedCopyResult(
                framework=payload.framework,
                headline=payload.headline,
                subheadline=payload.subheadline or product.title,
                synopsis=payload.synopsis or product.description,
                blocks=payload.blocks,
                html=payload.html,
            )
        case LegacyTextPayload(copy=copy):
            return build_fallback(product, copy)
        case UnrecognizedPayload(reason=reason):
            logger.info("copy_normalizer.unrecognized_payload", extra={"reason": reason})
            return build_fallback(product, prompt)
