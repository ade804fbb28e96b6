# offerwatch/scanners/extract.py
"""
Text heuristics shared by the scanners.

Sites phrase offers as "Get 100,000 Gold Coins + 2 Free SC" and the like.
We only pull out the amount + currency phrases; what the offer actually
means is left to whoever reads the page.
"""

from __future__ import annotations

import html
import re
from typing import List, Optional

from offerwatch.scanners.base import OfferDraft

TAG_RE = re.compile(r"<(script|style)\b.*?</\1>|<[^>]+>", re.IGNORECASE | re.DOTALL)
SPACE_RE = re.compile(r"\s+")
OFFER_RE = re.compile(
    r"(?:\$\s?)?\b(\d{1,3}(?:,\d{3})+|\d+(?:\.\d+)?)\s*%?\s*"
    r"(?:free\s+)?"
    r"(sweeps(?:takes)?\s+coins|gold\s+coins|free\s+spins|spins|coins|SC|GC|bonus)\b",
    re.IGNORECASE,
)
META_RE = re.compile(
    r"<meta\s+[^>]*(?:name|property)=[\"'](?:description|og:description|og:title)[\"'][^>]*>",
    re.IGNORECASE,
)
CONTENT_RE = re.compile(r"content=[\"']([^\"']*)[\"']", re.IGNORECASE)
TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)


def page_text(markup: str) -> str:
    """Strip tags, scripts and styles; collapse whitespace."""
    return SPACE_RE.sub(" ", html.unescape(TAG_RE.sub(" ", markup or ""))).strip()


def page_metadata(markup: str) -> str:
    """<title> plus description-like <meta> content, joined."""
    parts: List[str] = []
    m = TITLE_RE.search(markup or "")
    if m:
        parts.append(m.group(1))
    for tag in META_RE.findall(markup or ""):
        content = CONTENT_RE.search(tag)
        if content:
            parts.append(content.group(1))
    return page_text(" | ".join(parts))


def extract_offers(text: str, url: Optional[str] = None, limit: int = 20) -> List[OfferDraft]:
    drafts: List[OfferDraft] = []
    seen = set()
    for m in OFFER_RE.finditer(text or ""):
        title = SPACE_RE.sub(" ", m.group(0)).strip()
        key = title.lower()
        if key in seen:
            continue
        seen.add(key)
        start, end = max(0, m.start() - 60), min(len(text), m.end() + 60)
        drafts.append(OfferDraft(title=title, description=text[start:end].strip(), url=url))
        if len(drafts) >= limit:
            break
    return drafts
