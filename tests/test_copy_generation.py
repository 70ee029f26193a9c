from __future__ import annotations

import pytest

from pagegen.schemas import ProductInput
from pagegen.services.copy_generation import (
    CTA_BUTTON_LABEL,
    CTA_LABELS,
    build_blocks,
    build_fallback,
    build_generation_prompt,
    format_price,
    join_phrases,
    render_document,
    select_framework,
    unique_entries,
)


def _product(**overrides) -> ProductInput:
    data = {
        "title": "Desk Lamp",
        "description": "Warm light for late evenings.",
        "price": 49,
        "images": ["lamp.png"],
    }
    data.update(overrides)
    return ProductInput(**data)


def test_select_framework_defaults_to_aida_without_product():
    assert select_framework() == "AIDA"
    assert select_framework(None) == "AIDA"


@pytest.mark.parametrize(
    ("overrides", "expected"),
    [
        ({"tone": "professional"}, "FAB"),
        ({"tone": "technical", "description": "Solves the problem of your dream future"}, "FAB"),
        ({"tone": "inspirational"}, "BAB"),
        ({"description": "Build the future you want"}, "BAB"),
        ({"features": ["Made for your DREAM setup"]}, "BAB"),
        ({"keyBenefits": ["No more struggle with cables"]}, "PAS"),
        ({"tone": "bold"}, "PAS"),
        ({"tone": "luxury", "description": "Every problem handled"}, "PAS"),
        ({"tone": "luxury"}, "4Ps"),
        ({"tone": "playful"}, "AIDA"),
        ({}, "AIDA"),
    ],
)
def test_select_framework_rules_apply_in_order(overrides, expected):
    assert select_framework(_product(**overrides)) == expected


def test_mug_scenario(mug):
    framework = select_framework(mug)
    blocks = build_blocks(mug, framework)

    assert framework == "4Ps"
    assert [block.type for block in blocks] == ["hook", "summary", "cta"]
    assert blocks[-1].headline == CTA_LABELS["4Ps"]


def test_build_blocks_full_product_order_and_ids(rich_product):
    blocks = build_blocks(rich_product, "AIDA")

    assert [block.type for block in blocks] == [
        "hook",
        "summary",
        "features",
        "benefits",
        "use_cases",
        "whats_included",
        "social_proof",
        "cta",
    ]
    assert [block.id for block in blocks] == [f"{block.type}-{index}" for index, block in enumerate(blocks)]
    assert len({block.id for block in blocks}) == len(blocks)


def test_build_blocks_hook_and_summary_bodies(rich_product):
    blocks = build_blocks(rich_product, "AIDA")

    assert "weekend hikers" in blocks[0].body
    assert blocks[1].body == "Top benefits include Less shoulder strain and Stays dry in the rain."


def test_summary_body_single_and_no_benefits():
    single = build_blocks(_product(keyBenefits=["Dimmable"]), "AIDA")[1]
    none = build_blocks(_product(), "AIDA")[1]

    assert "Dimmable" in single.body
    assert "Top benefits include" not in single.body
    assert "Desk Lamp" in none.body


def test_features_bullets_are_deduplicated_in_order():
    blocks = build_blocks(_product(features=["A", "A", "B"]), "AIDA")
    features = next(block for block in blocks if block.type == "features")

    assert features.bullets == ["A", "B"]


def test_empty_use_cases_omit_the_block():
    blocks = build_blocks(_product(useCases=[], features=["Dimmable"]), "AIDA")

    assert all(block.type != "use_cases" for block in blocks)


def test_blank_entries_never_produce_a_block():
    blocks = build_blocks(_product(useCases=["  ", ""], whatsIncluded=[" "]), "AIDA")

    assert [block.type for block in blocks] == ["hook", "summary", "cta"]


def test_social_proof_quotes_first_two_reviews(rich_product):
    block = next(block for block in build_blocks(rich_product, "AIDA") if block.type == "social_proof")

    assert block.body == '"Carried it for 20 miles without a sore back." - Ana "Pockets everywhere." - Ben'
    assert "Would buy again" not in block.body
    assert block.bullets is None


def test_cta_block_states_price_and_carries_call_to_action():
    paid = build_blocks(_product(price=12.5), "PAS")[-1]
    free = build_blocks(_product(price=0), "PAS")[-1]

    assert paid.type == "cta"
    assert paid.headline == CTA_LABELS["PAS"]
    assert paid.body.startswith("Only $12.50.")
    assert free.body.startswith("Great value.")
    assert paid.callToAction is not None
    assert paid.callToAction.label == CTA_BUTTON_LABEL
    assert paid.callToAction.description


def test_build_blocks_and_render_are_deterministic(rich_product):
    first = build_blocks(rich_product, "BAB")
    second = build_blocks(rich_product, "BAB")

    assert first == second
    assert render_document(rich_product, first) == render_document(rich_product, second)


def test_render_document_escapes_field_values():
    product = _product(
        title="<script>alert(1)</script>",
        description='Say "hi" & <b>bye</b>',
        features=["<img src=x onerror=alert(1)>"],
    )
    html = render_document(product, build_blocks(product, "AIDA"))

    assert "<script>" not in html
    assert "<img" not in html
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html
    assert "&amp;" in html


def test_render_document_layout(rich_product):
    blocks = build_blocks(rich_product, "AIDA")
    html = render_document(rich_product, blocks)

    assert html.startswith('<article class="product-page">')
    assert "<h1>Trail Pack</h1>" in html
    assert "Designed for weekend hikers" in html
    assert "Tone: balanced | Keywords: hiking backpack, daypack" in html
    assert html.count("<section ") == len(blocks)
    assert '<p class="product-page__price">$129.00</p>' in html
    assert html.index('id="hook-0"') < html.index('id="cta-7"')


def test_render_document_omits_audience_line_when_absent(mug):
    html = render_document(mug, build_blocks(mug, "4Ps"))

    assert "Designed for" not in html
    assert "Tone: luxury</p>" in html


@pytest.mark.parametrize("prompt", ["", "anything", "   \n"])
def test_build_fallback_is_total(mug, prompt):
    result = build_fallback(mug, prompt)

    assert result.blocks
    assert result.blocks[0].type == "hook"
    assert result.blocks[-1].type == "cta"
    assert result.html == render_document(mug, result.blocks)


def test_build_fallback_headline_subheadline_and_synopsis(rich_product, mug):
    rich = build_fallback(rich_product)
    plain = build_fallback(mug)

    assert rich.framework == "AIDA"
    assert rich.headline == rich.blocks[0].headline
    assert rich.subheadline == "Your go-to choice for hiking backpack"
    assert rich.synopsis == "Trail Pack combines Ventilated back panel and Hydration sleeve with Less shoulder strain."
    assert plain.subheadline == "Thoughtfully crafted for modern customers"
    assert plain.synopsis == "Mug combines thoughtful design with dependable everyday performance."


def test_build_fallback_subheadline_uses_audience_without_keyword():
    result = build_fallback(_product(targetAudience="night owls"))

    assert result.subheadline == "Thoughtfully crafted for night owls"


def test_helpers():
    assert unique_entries([" a ", "a", "", "b"]) == ["a", "b"]
    assert join_phrases([]) == ""
    assert join_phrases(["A"]) == "A"
    assert join_phrases(["A", "B", "C"]) == "A, B and C"
    assert format_price(0) == "Great value"
    assert format_price(3) == "$3.00"


def test_build_generation_prompt(rich_product, mug):
    prompt = build_generation_prompt(rich_product)

    assert prompt.startswith("Create a persuasive product page with hook, benefits, features, specs")
    assert "for Trail Pack." in prompt
    assert "Target audience: weekend hikers." in prompt
    assert "Focus keywords: hiking backpack, daypack." in prompt
    assert "Preferred tone: balanced." in prompt
    assert prompt.endswith("Price: $129.00.")
    assert "Target audience" not in build_generation_prompt(mug)
