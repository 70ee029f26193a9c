from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from pagegen.config import settings
from pagegen.llm.client import LLMClient, LLMClientConfigError, LLMGenerationParams
from pagegen.schemas import (
    CallToAction,
    CopyDraft,
    DraftBlock,
    GeneratedBlock,
    GeneratedCopyResult,
    LegacyCopyResponse,
    ProductInput,
    StructuredCopyResponse,
)
from pagegen.services.copy_generation import build_fallback, render_document

logger = logging.getLogger(__name__)

STRUCTURED_SYSTEM_PROMPT = (
    "You are an expert e-commerce copywriter. Pick the persuasion framework that best fits the product "
    "(AIDA, PAS, BAB, FAB or 4Ps) and write a product page as JSON. Start with a hook block and end with a "
    "cta block. Use only facts present in the product details."
)
LEGACY_SYSTEM_PROMPT = (
    "You are an expert marketing copywriter. Produce engaging, conversion-focused copy using markdown "
    "where appropriate."
)
LEGACY_MAX_TOKENS = 320
_WHITESPACE_RE = re.compile(r"\s+")


def copy_draft_response_format() -> dict[str, Any]:
    return {
        "type": "json_schema",
        "json_schema": {"name": "ProductPageDraft", "schema": CopyDraft.model_json_schema()},
    }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _draft_block(index: int, draft: DraftBlock) -> GeneratedBlock:
    call_to_action = None
    if draft.callToActionLabel:
        call_to_action = CallToAction(label=draft.callToActionLabel, description=draft.callToActionDescription)
    return GeneratedBlock(
        id=f"{draft.type}-{index}",
        type=draft.type,
        title=draft.title,
        headline=draft.headline,
        body=draft.body,
        bullets=[item for item in (draft.bullets or []) if item.strip()] or None,
        callToAction=call_to_action,
    )


def draft_to_result(draft: CopyDraft, product: ProductInput) -> GeneratedCopyResult:
    blocks = [_draft_block(index, block) for index, block in enumerate(draft.blocks)]
    return GeneratedCopyResult(
        framework=draft.framework,
        headline=draft.headline,
        subheadline=draft.subheadline or product.title,
        synopsis=draft.synopsis or product.description,
        blocks=blocks,
        html=render_document(product, blocks),
    )


def _structured_message(prompt: str, product: ProductInput) -> str:
    return f"{prompt}\n\nProduct details (JSON):\n{product.model_dump_json(exclude_none=True)}"


async def generate_structured_copy(
    product: ProductInput,
    prompt: str,
    *,
    llm_client: LLMClient | None = None,
) -> StructuredCopyResponse:
    client = llm_client or LLMClient()
    params = LLMGenerationParams(
        model=client.default_model,
        max_tokens=settings.COPY_MAX_TOKENS,
        temperature=settings.COPY_TEMPERATURE,
        system_prompt=STRUCTURED_SYSTEM_PROMPT,
        response_format=copy_draft_response_format(),
    )

    try:
        source = client.provider_for(params.model)
        text = await asyncio.to_thread(client.generate_text, _structured_message(prompt, product), params)
        result = draft_to_result(CopyDraft.model_validate_json(text), product)
    except LLMClientConfigError as exc:
        logger.info("copy_writer.llm_unconfigured", extra={"error": str(exc)})
    except ValidationError as exc:
        logger.warning("copy_writer.invalid_draft", extra={"error_count": exc.error_count()})
    except Exception as exc:  # noqa: BLE001
        logger.warning("copy_writer.llm_failed", extra={"error": str(exc), "error_type": type(exc).__name__})
    else:
        logger.info("copy_writer.structured_generated", extra={"source": source, "framework": result.framework})
        return StructuredCopyResponse(**result.model_dump(), prompt=prompt, source=source, generatedAt=_utcnow())

    result = build_fallback(product, prompt)
    return StructuredCopyResponse(**result.model_dump(), prompt=prompt, source="fallback", generatedAt=_utcnow())


def build_fallback_copy(prompt: str) -> str:
    subject = _WHITESPACE_RE.sub(" ", prompt or "").strip() or "your product"
    return "\n".join(
        [
            f"✨ **Introducing {subject}**",
            "",
            "Experience the perfect blend of innovation and quality. Designed to delight, this offering "
            "delivers real value from the very first use.",
            "",
            "✅ **Why customers love it**",
            "- Thoughtfully crafted to solve real problems",
            "- Reliable, durable, and built to impress",
            "- Supported by a friendly team that cares",
            "",
            "\U0001F680 Ready to level up your product experience? Act now and feel the difference.",
        ]
    )


async def generate_legacy_copy(prompt: str, *, llm_client: LLMClient | None = None) -> LegacyCopyResponse:
    client = llm_client or LLMClient()
    params = LLMGenerationParams(
        model=client.default_model,
        max_tokens=LEGACY_MAX_TOKENS,
        temperature=settings.COPY_TEMPERATURE,
        system_prompt=LEGACY_SYSTEM_PROMPT,
    )
    message = f"Create compelling marketing copy for the following product details:\n\n{prompt}"

    copy = ""
    source = "fallback"
    try:
        provider = client.provider_for(params.model)
        copy = (await asyncio.to_thread(client.generate_text, message, params)).strip()
    except LLMClientConfigError as exc:
        logger.info("copy_writer.llm_unconfigured", extra={"error": str(exc)})
    except Exception as exc:  # noqa: BLE001
        logger.warning("copy_writer.llm_failed", extra={"error": str(exc), "error_type": type(exc).__name__})
    else:
        if copy:
            source = provider

    if not copy:
        copy = build_fallback_copy(prompt)
    return LegacyCopyResponse(text=copy, prompt=prompt, source=source, generatedAt=_utcnow())
