# src/scrapers/extraction.py

"""Shared extraction primitives used by every source's waterfall.

Everything here is pure: it takes document text or parsed markup and
returns plain values.  Malformed input yields empty results rather
than exceptions so a failing strategy simply falls through.
"""

import json
import logging
import re
from collections.abc import Iterator
from typing import Any
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger("realtime_search.extraction")

_PRICE_CHARS_RE = re.compile(r"[^\d.,]")

# "$19.99", "US$ 1,299.00", "€12,50", "£7"
CURRENCY_PRICE_RE = re.compile(
    r"(US\$|\$|€|£|USD|EUR|GBP)\s?(\d[\d.,]*)"
)


# ------------------------------------------------------------------
# Normalisation
# ------------------------------------------------------------------


def absolute_url(href: str | None, origin: str) -> str:
    """Resolve a relative or protocol-relative link against *origin*."""
    if not href:
        return ""
    href = href.strip()
    if href.startswith("//"):
        return "https:" + href
    if href.startswith(("http://", "https://")):
        return href
    return urljoin(origin.rstrip("/") + "/", href)


def absolute_image(src: str | None, origin: str) -> str:
    """Like :func:`absolute_url` but leaves inline data URIs out."""
    if not src or src.strip().startswith("data:"):
        return ""
    return absolute_url(src, origin)


def clean_price(text: str | None) -> str:
    """Strip a price to digits and separators (``"$1,299.00"`` → ``"1,299.00"``)."""
    if not text:
        return ""
    # Ranges and "was/now" pairs: keep the first figure only
    match = re.search(r"\d[\d.,]*", str(text))
    if not match:
        return ""
    return _PRICE_CHARS_RE.sub("", match.group(0)).strip(".,")


def find_currency_price(text: str) -> str:
    """Return the first currency-prefixed number in *text*, cleaned."""
    match = CURRENCY_PRICE_RE.search(text or "")
    return clean_price(match.group(2)) if match else ""


def infer_currency(price: str, stated: str | None = None) -> str:
    """Use the stated currency, else assume USD when a price exists."""
    if stated:
        return stated
    return "USD" if price else ""


def text_of(node: Tag | None) -> str:
    """Whitespace-collapsed text of a node, or ``""``."""
    if node is None:
        return ""
    return " ".join(node.get_text(" ", strip=True).split())


def attr_of(node: Tag | None, *names: str) -> str:
    """First non-empty attribute among *names* on *node*."""
    if node is None:
        return ""
    for name in names:
        value = node.get(name)
        if isinstance(value, list):
            value = " ".join(value)
        if value:
            return str(value).strip()
    return ""


def image_src(node: Tag | None) -> str:
    """Image URL of *node*, skipping inline placeholders for lazy sources."""
    for name in ("src", "data-src", "data-original"):
        value = attr_of(node, name)
        if value and not value.startswith("data:"):
            return value
    return ""


# ------------------------------------------------------------------
# Embedded JSON arrays
# ------------------------------------------------------------------


def _balanced_end(text: str, start: int, escaped: bool = False) -> int:
    """Index just past the ``]`` closing the array opened at *start*.

    With *escaped* the array sits inside a JS string literal, so every
    backslash pair is read as one character first (``\\"`` is a quote,
    ``\\\\`` a backslash) before JSON string rules apply.  Returns -1
    when the array never closes (truncated document).
    """
    depth = 0
    in_string = False
    pending_escape = False
    i = start
    while i < len(text):
        ch = text[i]
        i += 1
        if escaped and ch == "\\":
            ch = text[i : i + 1]
            i += 1
            if not ch:
                break
        if in_string:
            if pending_escape:
                pending_escape = False
            elif ch == "\\":
                pending_escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "[{":
            depth += 1
        elif ch in "]}":
            depth -= 1
            if depth == 0:
                return i
    return -1


def find_json_arrays(
    text: str, keys: tuple[str, ...],
) -> Iterator[list[Any]]:
    """Yield every parseable JSON array keyed by one of *keys*.

    Both plain (``"goods": [``) and JS-escaped (``\\"goods\\":[``)
    occurrences are scanned.  Truncated or malformed arrays are
    skipped.
    """
    names = "|".join(re.escape(k) for k in keys)
    patterns = (
        (re.compile(rf'"(?:{names})"\s*:\s*\['), False),
        (re.compile(rf'\\"(?:{names})\\"\s*:\s*\['), True),
    )
    for pattern, escaped in patterns:
        for match in pattern.finditer(text):
            start = match.end() - 1
            end = _balanced_end(text, start, escaped)
            if end == -1:
                logger.debug(
                    "Unterminated embedded array at offset %d", start
                )
                continue
            segment = text[start:end]
            try:
                if escaped:
                    segment = json.loads(f'"{segment}"')
                data = json.loads(segment)
            except (json.JSONDecodeError, ValueError):
                logger.debug(
                    "Embedded array at offset %d is not valid JSON",
                    start,
                )
                continue
            if isinstance(data, list):
                yield data


# ------------------------------------------------------------------
# Linked data (schema.org)
# ------------------------------------------------------------------


def _is_type(obj: dict[str, Any], name: str) -> bool:
    kind = obj.get("@type", "")
    if isinstance(kind, list):
        return name in kind
    return kind == name


def _walk_ld(obj: Any) -> Iterator[dict[str, Any]]:
    if isinstance(obj, list):
        for item in obj:
            yield from _walk_ld(item)
        return
    if not isinstance(obj, dict):
        return
    if "@graph" in obj:
        yield from _walk_ld(obj["@graph"])
    if _is_type(obj, "Product"):
        yield obj
    elif _is_type(obj, "ItemList"):
        for element in obj.get("itemListElement", []) or []:
            if isinstance(element, dict) and "item" in element:
                yield from _walk_ld(element["item"])
            else:
                yield from _walk_ld(element)


def iter_ld_products(soup: BeautifulSoup) -> Iterator[dict[str, Any]]:
    """Yield schema.org ``Product`` objects from ld+json blocks."""
    for script in soup.find_all(
        "script", attrs={"type": "application/ld+json"}
    ):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, ValueError):
            continue
        yield from _walk_ld(data)


def ld_image(value: Any) -> str:
    """Pick a URL out of a schema.org ``image`` value."""
    if isinstance(value, list):
        return ld_image(value[0]) if value else ""
    if isinstance(value, dict):
        return str(value.get("url") or value.get("contentUrl") or "")
    return str(value or "")


def ld_offer(value: Any) -> tuple[str, str]:
    """Return ``(price, currency)`` from a schema.org ``offers`` value."""
    if isinstance(value, list):
        return ld_offer(value[0]) if value else ("", "")
    if not isinstance(value, dict):
        return "", ""
    price = value.get("price")
    if price in (None, ""):
        price = value.get("lowPrice", "")
    return clean_price(str(price)), str(value.get("priceCurrency") or "")


# ------------------------------------------------------------------
# Generic anchors
# ------------------------------------------------------------------


def nearest_container_text(anchor: Tag, depth: int = 4) -> str:
    """Text of the closest ancestor that carries a price pattern."""
    node: Tag | None = anchor
    for _ in range(depth):
        if node is None:
            break
        text = text_of(node)
        if CURRENCY_PRICE_RE.search(text):
            return text
        parent = node.parent
        node = parent if isinstance(parent, Tag) else None
    return ""


def nearest_image(anchor: Tag, depth: int = 4) -> Tag | None:
    """The anchor's own image, else the closest ancestor's first image."""
    node: Tag | None = anchor
    for _ in range(depth):
        if node is None:
            break
        img = node.find("img")
        if isinstance(img, Tag):
            return img
        parent = node.parent
        node = parent if isinstance(parent, Tag) else None
    return None
