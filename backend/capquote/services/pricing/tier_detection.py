"""Guess the product tier from a free-form cap description.

- 7-panel caps are Tier 3
- 4/5/6-panel caps are Tier 1 with a curved bill, Tier 2 with a flat or
  slightly curved bill (or no bill style given)
- camo, premium and specialty caps are Tier 3
"""

from __future__ import annotations

import re
from typing import Optional

_SEVEN_PANEL_RE = re.compile(r"\b(?:7|seven)[\s-]*panel", re.IGNORECASE)
_PANEL_RE = re.compile(r"\b(?:4|5|6|four|five|six)[\s-]*panel", re.IGNORECASE)
_FLAT_RE = re.compile(r"\b(?:flat|slight(?:ly)?)\b", re.IGNORECASE)
_CURVED_RE = re.compile(r"\bcurved?\b", re.IGNORECASE)
_SPECIALTY_RE = re.compile(r"\b(?:camo|camouflage|premium|specialty)\b", re.IGNORECASE)


def detect_product_tier(description: Optional[str]) -> Optional[str]:
    """Return "Tier 1"/"Tier 2"/"Tier 3", or None when nothing matches."""
    text = (description or "").strip()
    if not text:
        return None
    if _SEVEN_PANEL_RE.search(text):
        return "Tier 3"
    if _PANEL_RE.search(text):
        if _CURVED_RE.search(text) and not _FLAT_RE.search(text):
            return "Tier 1"
        return "Tier 2"
    if _SPECIALTY_RE.search(text):
        return "Tier 3"
    return None


def choose_product_tier(
    explicit: Optional[str],
    description: Optional[str],
    default: str,
    prefer_description: bool = False,
) -> str:
    """Pick the tier for an estimate request.

    ``prefer_description`` is the "ai" batch mode: a tier detected from the
    description beats the explicit one.
    """
    explicit = (explicit or "").strip() or None
    detected = detect_product_tier(description)
    if prefer_description:
        return detected or explicit or default
    return explicit or detected or default
