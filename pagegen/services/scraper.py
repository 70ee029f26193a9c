from __future__ import annotations

import logging
import re
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from pagegen.config import settings
from pagegen.schemas import ProductInput
from pagegen.security import validate_http_url

logger = logging.getLogger(__name__)

UNTITLED_PRODUCT = "Untitled Product"
MISSING_DESCRIPTION = "No description found for this product yet."
_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0 Safari/537.36"
)
_PRICE_RE = re.compile(r"(-?\d+(?:\.\d+)?)")
_PRICE_NOISE_RE = re.compile(r"[,\s]")
_IMAGE_ATTRS = ("src", "data-src", "data-lazy-src")


class ScrapeError(RuntimeError):
    def __init__(self, *, message: str, status_code: int = 502) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _meta_content(soup: BeautifulSoup, **attrs: str) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return ""
    content = tag.get("content")
    return content.strip() if isinstance(content, str) else ""


def _first_text(soup: BeautifulSoup, selector: str) -> str:
    node = soup.select_one(selector)
    return node.get_text(strip=True) if node is not None else ""


def _first_attr(soup: BeautifulSoup, selector: str, attr: str) -> str:
    node = soup.select_one(selector)
    if node is None:
        return ""
    value = node.get(attr)
    return value.strip() if isinstance(value, str) else ""


def parse_price(value: str | None) -> float:
    if not value or not isinstance(value, str):
        return 0.0
    match = _PRICE_RE.search(_PRICE_NOISE_RE.sub("", value))
    if not match:
        return 0.0
    return max(0.0, float(match.group(1)))


def collect_image_urls(soup: BeautifulSoup, page_url: str, *, limit: int) -> list[str]:
    candidates: dict[str, None] = {}

    def add_candidate(src: str | None) -> None:
        if not src or not isinstance(src, str):
            return
        resolved = urljoin(page_url, src.strip())
        if validate_http_url(resolved):
            candidates.setdefault(resolved, None)

    add_candidate(_meta_content(soup, property="og:image"))
    add_candidate(_meta_content(soup, name="twitter:image"))
    for img in soup.find_all("img"):
        for attr in _IMAGE_ATTRS:
            add_candidate(img.get(attr))

    return list(candidates)[:limit]


def extract_product_details(html: str, page_url: str, *, max_images: int | None = None) -> ProductInput:
    soup = BeautifulSoup(html, "html.parser")
    limit = settings.SCRAPE_MAX_IMAGES if max_images is None else max_images

    title = (
        _meta_content(soup, property="og:title")
        or _meta_content(soup, name="twitter:title")
        or (soup.title.get_text(strip=True) if soup.title else "")
        or UNTITLED_PRODUCT
    )
    description = (
        _meta_content(soup, property="og:description")
        or _meta_content(soup, name="description")
        or _first_text(soup, '[itemprop="description"]')
        or MISSING_DESCRIPTION
    )
    price_text = (
        _first_attr(soup, '[itemprop="price"]', "content")
        or _first_attr(soup, "[data-price]", "data-price")
        or _first_text(soup, '[class*="price"]')
        or _first_text(soup, '[id*="price"]')
    )

    return ProductInput(
        title=title,
        description=description,
        price=parse_price(price_text),
        images=collect_image_urls(soup, page_url, limit=limit),
        url=page_url,
    )


def _upstream_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("message"), str) and body["message"].strip():
        return body["message"].strip()
    return response.reason_phrase or "Failed to retrieve the provided product page."


async def fetch_page(
    url: str,
    *,
    timeout_seconds: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.Response:
    timeout = float(timeout_seconds or settings.SCRAPE_TIMEOUT_SECONDS)
    try:
        async with httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": _USER_AGENT},
            transport=transport,
        ) as client:
            response = await client.get(url)
    except httpx.RequestError as exc:
        logger.warning("scraper.fetch_failed", extra={"url": url, "error": str(exc)})
        raise ScrapeError(message="Failed to retrieve the provided product page.") from exc

    if response.status_code >= 400:
        status_code = response.status_code if 400 <= response.status_code < 600 else 502
        raise ScrapeError(message=_upstream_message(response), status_code=status_code)
    return response


async def scrape_product(
    url: str,
    *,
    timeout_seconds: float | None = None,
    max_images: int | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ProductInput:
    page_url = validate_http_url(url)
    if not page_url:
        raise ScrapeError(message="Please provide a valid http(s) URL.", status_code=400)

    response = await fetch_page(page_url, timeout_seconds=timeout_seconds, transport=transport)
    product = extract_product_details(response.text, page_url, max_images=max_images)
    logger.info(
        "scraper.product_extracted",
        extra={"url": page_url, "image_count": len(product.images), "price": product.price},
    )
    return product
