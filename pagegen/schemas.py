from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ToneSetting = Literal[
    "balanced",
    "conversational",
    "professional",
    "bold",
    "luxury",
    "playful",
    "technical",
    "inspirational",
]
MarketingFramework = Literal["AIDA", "PAS", "BAB", "FAB", "4Ps"]
BlockType = Literal[
    "hook",
    "summary",
    "features",
    "benefits",
    "specs",
    "use_cases",
    "whats_included",
    "social_proof",
    "cta",
]
CopySource = Literal["openai", "anthropic", "fallback"]
JobName = Literal["scrape", "ai"]
JobStatus = Literal["queued", "completed", "failed"]

DEFAULT_TONE: ToneSetting = "balanced"


class ProductReview(BaseModel):
    author: str
    quote: str


class ProductInput(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    price: float = Field(default=0, ge=0)
    images: list[str] = Field(default_factory=list)
    targetAudience: str | None = None
    primaryKeyword: str | None = None
    secondaryKeyword: str | None = None
    tone: ToneSetting = DEFAULT_TONE
    keyBenefits: list[str] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)
    useCases: list[str] = Field(default_factory=list)
    whatsIncluded: list[str] = Field(default_factory=list)
    reviews: list[ProductReview] = Field(default_factory=list)
    url: str | None = None

    @field_validator("keyBenefits", "features", "useCases", "whatsIncluded", mode="before")
    @classmethod
    def strip_entries(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return [item.strip() for item in value if isinstance(item, str) and item.strip()]
        return value

    @field_validator("targetAudience", "primaryKeyword", "secondaryKeyword", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("tone", mode="before")
    @classmethod
    def default_tone(cls, value: Any) -> Any:
        if value is None or value == "":
            return DEFAULT_TONE
        return value

    def readiness_errors(self) -> dict[str, str]:
        """Field errors that would keep the product form from submitting."""
        errors: dict[str, str] = {}
        if len(self.title.strip()) < 3:
            errors["title"] = "Title must be at least 3 characters."
        if len(self.description.strip()) < 10:
            errors["description"] = "Description must be at least 10 characters."
        if self.price <= 0:
            errors["price"] = "Price must be a positive number."
        if not self.images:
            errors["images"] = "At least one image is required."
        return errors

    def is_ready_for_generation(self) -> bool:
        return not self.readiness_errors()


class CallToAction(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    description: str | None = None
    url: str | None = None


class GeneratedBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    type: BlockType
    title: str
    headline: str
    body: str
    bullets: list[str] | None = None
    callToAction: CallToAction | None = None


class GeneratedCopyResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    framework: MarketingFramework
    headline: str
    subheadline: str
    synopsis: str
    blocks: list[GeneratedBlock] = Field(min_length=1)
    html: str


class GenerateCopyRequest(BaseModel):
    prompt: str = ""
    product: ProductInput | None = None


class StructuredCopyResponse(GeneratedCopyResult):
    prompt: str
    source: CopySource
    generatedAt: datetime


class LegacyCopyResponse(BaseModel):
    # Serialized as "copy"; the attribute name avoids BaseModel.copy.
    text: str = Field(serialization_alias="copy")
    prompt: str
    source: CopySource
    generatedAt: datetime


class DraftBlock(BaseModel):
    """Block shape requested from the LLM; ids are assigned locally."""

    type: BlockType
    title: str
    headline: str
    body: str
    bullets: list[str] | None = None
    callToActionLabel: str | None = None
    callToActionDescription: str | None = None


class CopyDraft(BaseModel):
    framework: MarketingFramework
    headline: str = Field(min_length=1)
    subheadline: str
    synopsis: str
    blocks: list[DraftBlock] = Field(min_length=1)


class ScrapeRequest(BaseModel):
    url: str = ""


class ExportRequest(BaseModel):
    html: str = ""
    title: str | None = None
    filename: str | None = None


class PreviewSection(BaseModel):
    id: str
    type: BlockType
    cssClass: str
    title: str
    headline: str
    body: str
    bullets: list[str] = Field(default_factory=list)
    callToAction: CallToAction | None = None


class PreviewModel(BaseModel):
    frameworkLabel: str
    headline: str
    subheadline: str
    synopsis: str
    sections: list[PreviewSection]


class CreateJobRequest(BaseModel):
    name: JobName
    data: dict[str, Any] = Field(default_factory=dict)
    payloadId: str | None = None

    @model_validator(mode="after")
    def validate_data(self) -> "CreateJobRequest":
        if self.name == "scrape":
            url = self.data.get("url")
            if not isinstance(url, str) or not url.strip():
                raise ValueError("scrape jobs require data.url")
        if self.name == "ai":
            if not isinstance(self.data.get("metadata"), dict):
                raise ValueError("ai jobs require data.metadata")
        return self


class JobResponse(BaseModel):
    payloadId: str
    name: JobName
    status: JobStatus
    workflowId: str
    attempts: int
    result: dict[str, Any] | None = None
    error: str | None = None
    createdAt: datetime
    updatedAt: datetime
