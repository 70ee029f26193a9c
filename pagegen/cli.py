from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from pagegen.schemas import ProductInput
from pagegen.services.copy_generation import build_fallback, build_generation_prompt
from pagegen.services.copy_orchestrator import GenerationOrchestrator
from pagegen.services.copy_service_client import CopyServiceClient
from pagegen.services.export import build_export_document
from pagegen.services.notifications import Notification, NotificationService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pagegen",
        description="Generate a product page from a product JSON file.",
    )
    parser.add_argument("product", type=Path, help="Path to a JSON file describing the product.")
    parser.add_argument("--prompt", default=None, help="Override the generation prompt.")
    parser.add_argument("--out", type=Path, default=Path("product-page.html"), help="Output HTML file.")
    parser.add_argument("--base-url", default=None, help="Copy service base URL.")
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Skip the copy service and use the local fallback builder.",
    )
    return parser


def load_product(path: Path) -> ProductInput:
    data: Any = json.loads(path.read_text(encoding="utf-8"))
    return ProductInput.model_validate(data)


def _print_notifications(snapshot: tuple[Notification, ...]) -> None:
    if snapshot:
        latest = snapshot[-1]
        print(f"[{latest.type}] {latest.message}", file=sys.stderr)


async def _generate_html(product: ProductInput, prompt: str, *, offline: bool, base_url: str | None) -> str:
    if offline:
        return build_fallback(product, prompt).html

    notifications = NotificationService(default_duration_seconds=0)
    notifications.subscribe(_print_notifications)
    orchestrator = GenerationOrchestrator(CopyServiceClient(base_url=base_url), notifications=notifications)
    try:
        outcome = await orchestrator.generate(product, prompt)
    finally:
        await orchestrator.aclose()
        notifications.close()
    if outcome is None:
        raise RuntimeError("Copy generation was superseded before it finished")
    return outcome.result.html


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        product = load_product(args.product)
    except (OSError, ValueError, ValidationError) as exc:
        print(f"Could not load product: {exc}", file=sys.stderr)
        return 2

    readiness = product.readiness_errors()
    for field, message in readiness.items():
        print(f"warning: {field}: {message}", file=sys.stderr)

    prompt = (args.prompt or "").strip() or build_generation_prompt(product)
    html = asyncio.run(_generate_html(product, prompt, offline=args.offline, base_url=args.base_url))
    document = build_export_document(html, product.title)
    args.out.write_text(document, encoding="utf-8")
    logger.info("cli.exported", extra={"path": str(args.out)})
    print(str(args.out))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
