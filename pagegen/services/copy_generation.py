from __future__ import annotations

import logging
from html import escape
from typing import Any, Iterable, Sequence

from pagegen.schemas import (
    BlockType,
    CallToAction,
    GeneratedBlock,
    GeneratedCopyResult,
    MarketingFramework,
    ProductInput,
)

logger = logging.getLogger(__name__)

DEFAULT_FRAMEWORK: MarketingFramework = "AIDA"

_HOOK_HEADLINE_TEMPLATES: dict[str, str] = {
    "AIDA": "Discover {title}: the upgrade you have been waiting for",
    "PAS": "Still settling for less? {title} fixes that",
    "BAB": "Picture your day with {title}",
    "FAB": "{title}: engineered features, real advantages",
    "4Ps": "{title}: a promise of something exceptional",
}

CTA_LABELS: dict[str, str] = {
    "AIDA": "Get yours today",
    "PAS": "Solve it now",
    "BAB": "Start your transformation",
    "FAB": "See the difference for yourself",
    "4Ps": "Reserve yours now",
}

CTA_BUTTON_LABEL = "Add to cart"
CTA_BUTTON_DESCRIPTION = "Secure checkout, fast dispatch and friendly support on every order."

_BLOCK_TITLES: dict[str, str] = {
    "hook": "Why it matters",
    "summary": "At a glance",
    "features": "Key features",
    "benefits": "Benefits",
    "use_cases": "Perfect for",
    "whats_included": "What's included",
    "social_proof": "What customers say",
    "cta": "Ready to order?",
}

_SOCIAL_PROOF_LIMIT = 2
_SYNOPSIS_FEATURE_LIMIT = 2


def _text_signals(product: ProductInput) -> str:
    parts = [product.description, *product.keyBenefits, *product.features]
    return " ".join(parts).lower()


def select_framework(product: ProductInput | None = None) -> MarketingFramework:
    """
    Pick the persuasion framework for a product.

    Rules are evaluated in order and the first match wins:
      1. professional/technical tone -> FAB
      2. inspirational tone, or copy mentions "dream"/"future" -> BAB
      3. copy mentions "problem"/"struggle", or bold tone -> PAS
      4. luxury tone -> 4Ps
      5. anything else -> AIDA
    """
    if product is None:
        return DEFAULT_FRAMEWORK

    tone = product.tone
    text = _text_signals(product)

    if tone in ("professional", "technical"):
        return "FAB"
    if tone == "inspirational" or "dream" in text or "future" in text:
        return "BAB"
    if "problem" in text or "struggle" in text or tone == "bold":
        return "PAS"
    if tone == "luxury":
        return "4Ps"
    return DEFAULT_FRAMEWORK


def hook_headline(product: ProductInput, framework: MarketingFramework) -> str:
    template = _HOOK_HEADLINE_TEMPLATES.get(framework, _HOOK_HEADLINE_TEMPLATES[DEFAULT_FRAMEWORK])
    return template.format(title=product.title)


def cta_label(framework: MarketingFramework) -> str:
    return CTA_LABELS.get(framework, CTA_LABELS[DEFAULT_FRAMEWORK])


def unique_entries(items: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for item in items:
        cleaned = item.strip()
        if cleaned and cleaned not in seen:
            seen[cleaned] = None
    return list(seen)


def join_phrases(items: Sequence[str]) -> str:
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    return f"{', '.join(items[:-1])} and {items[-1]}"


def format_price(price: float) -> str:
    if not price:
        return "Great value"
    return f"${price:.2f}"


def _summary_body(product: ProductInput) -> str:
    benefits = unique_entries(product.keyBenefits)
    if not benefits:
        return f"{product.title} brings quality and everyday value together in one thoughtful package."
    if len(benefits) == 1:
        return f"The standout benefit: {benefits[0]}."
    return f"Top benefits include {join_phrases(benefits)}."


def _hook_body(product: ProductInput) -> str:
    if product.targetAudience:
        return f"Made for {product.targetAudience}, {product.title} fits right into the way you live and work."
    return f"Meet {product.title}, designed to make every day a little easier and a lot more enjoyable."


def _social_proof_body(product: ProductInput) -> str:
    quotes = [f'"{review.quote.strip()}" - {review.author.strip()}' for review in product.reviews[:_SOCIAL_PROOF_LIMIT]]
    return " ".join(quotes)


def _cta_body(product: ProductInput) -> str:
    price_text = format_price(product.price)
    if product.price:
        price_text = f"Only {price_text}"
    return f"{price_text}. Stock is limited, so order today and start enjoying {product.title} sooner."


def build_blocks(product: ProductInput, framework: MarketingFramework) -> list[GeneratedBlock]:
    drafts: list[dict[str, Any]] = [
        {
            "type": "hook",
            "headline": hook_headline(product, framework),
            "body": _hook_body(product),
        },
        {
            "type": "summary",
            "headline": f"{product.title} in a nutshell",
            "body": _summary_body(product),
        },
    ]

    features = unique_entries(product.features)
    if features:
        drafts.append(
            {
                "type": "features",
                "headline": f"What makes {product.title} stand out",
                "body": "Every detail is there for a reason.",
                "bullets": features,
            }
        )

    benefits = unique_entries(product.keyBenefits)
    if benefits:
        drafts.append(
            {
                "type": "benefits",
                "headline": "What you gain",
                "body": f"Here is what {product.title} changes for you.",
                "bullets": benefits,
            }
        )

    use_cases = unique_entries(product.useCases)
    if use_cases:
        drafts.append(
            {
                "type": "use_cases",
                "headline": f"Where {product.title} shines",
                "body": "Put it to work wherever you need it most.",
                "bullets": use_cases,
            }
        )

    included = unique_entries(product.whatsIncluded)
    if included:
        drafts.append(
            {
                "type": "whats_included",
                "headline": "Everything in the box",
                "body": "Unbox it and you are ready to go.",
                "bullets": included,
            }
        )

    if product.reviews:
        drafts.append(
            {
                "type": "social_proof",
                "headline": "Loved by customers",
                "body": _social_proof_body(product),
            }
        )

    drafts.append(
        {
            "type": "cta",
            "headline": cta_label(framework),
            "body": _cta_body(product),
            "callToAction": CallToAction(label=CTA_BUTTON_LABEL, description=CTA_BUTTON_DESCRIPTION),
        }
    )

    return [_to_block(index, draft) for index, draft in enumerate(drafts)]


def _to_block(index: int, draft: dict[str, Any]) -> GeneratedBlock:
    block_type: BlockType = draft["type"]
    return GeneratedBlock(
        id=f"{block_type}-{index}",
        type=block_type,
        title=_BLOCK_TITLES[block_type],
        headline=draft["headline"],
        body=draft["body"],
        bullets=draft.get("bullets") or None,
        callToAction=draft.get("callToAction"),
    )


def _meta_line(product: ProductInput) -> str:
    keywords = [keyword for keyword in (product.primaryKeyword, product.secondaryKeyword) if keyword]
    line = f"Tone: {product.tone}"
    if keywords:
        line += f" | Keywords: {', '.join(keywords)}"
    return line


def _render_block(block: GeneratedBlock) -> list[str]:
    lines = [
        f'<section class="product-page__block product-page__block--{escape(block.type)}" id="{escape(block.id)}">',
        f"<h2>{escape(block.title)}</h2>",
        f"<h3>{escape(block.headline)}</h3>",
        f"<p>{escape(block.body)}</p>",
    ]
    if block.bullets:
        lines.append("<ul>")
        lines.extend(f"<li>{escape(item)}</li>" for item in block.bullets)
        lines.append("</ul>")
    if block.callToAction:
        lines.append('<div class="product-page__cta">')
        lines.append(f"<strong>{escape(block.callToAction.label)}</strong>")
        if block.callToAction.description:
            lines.append(f"<p>{escape(block.callToAction.description)}</p>")
        lines.append("</div>")
    lines.append("</section>")
    return lines


def render_document(product: ProductInput, blocks: Sequence[GeneratedBlock]) -> str:
    lines = [
        '<article class="product-page">',
        '<header class="product-page__header">',
        f"<h1>{escape(product.title)}</h1>",
        f'<p class="product-page__description">{escape(product.description)}</p>',
    ]
    if product.targetAudience:
        lines.append(f'<p class="product-page__audience">Designed for {escape(product.targetAudience)}</p>')
    lines.append(f'<p class="product-page__meta">{escape(_meta_line(product))}</p>')
    lines.append("</header>")

    for block in blocks:
        lines.extend(_render_block(block))

    lines.extend(
        [
            '<footer class="product-page__footer">',
            f'<p class="product-page__price">{escape(format_price(product.price))}</p>',
            f'<p class="product-page__closing">Order {escape(product.title)} today and see the difference.</p>',
            "</footer>",
            "</article>",
        ]
    )
    return "\n".join(lines)


def _subheadline(product: ProductInput) -> str:
    if product.primaryKeyword:
        return f"Your go-to choice for {product.primaryKeyword}"
    return f"Thoughtfully crafted for {product.targetAudience or 'modern customers'}"


def _synopsis(product: ProductInput) -> str:
    features = unique_entries(product.features)[:_SYNOPSIS_FEATURE_LIMIT]
    benefits = unique_entries(product.keyBenefits)
    feature_text = join_phrases(features) if features else "thoughtful design"
    benefit_text = benefits[0] if benefits else "dependable everyday performance"
    return f"{product.title} combines {feature_text} with {benefit_text}."


def build_fallback(product: ProductInput, prompt: str = "") -> GeneratedCopyResult:
    framework = select_framework(product)
    blocks = build_blocks(product, framework)
    logger.debug(
        "copy_generation.fallback_built",
        extra={"framework": framework, "block_count": len(blocks), "prompt_chars": len(prompt or "")},
    )
    return GeneratedCopyResult(
        framework=framework,
        headline=hook_headline(product, framework),
        subheadline=_subheadline(product),
        synopsis=_synopsis(product),
        blocks=blocks,
        html=render_document(product, blocks),
    )


def build_generation_prompt(product: ProductInput) -> str:
    keywords = ", ".join(keyword for keyword in (product.primaryKeyword, product.secondaryKeyword) if keyword)
    context = " ".join(
        segment
        for segment in (
            f"Target audience: {product.targetAudience}." if product.targetAudience else None,
            f"Focus keywords: {keywords}." if keywords else None,
            f"Preferred tone: {product.tone}." if product.tone else None,
        )
        if segment
    )
    segments = [
        "Create a persuasive product page with hook, benefits, features, specs, use cases, "
        f"what's included, reviews, and CTA for {product.title}.",
        context,
        f"Base description: {product.description}.",
        f"Price: ${product.price:.2f}.",
    ]
    return " ".join(segment for segment in segments if segment)
