"""Decompose logo descriptors into one size, decoration and application.

Precedence per axis, highest first:

============  ==========================================================
size          token in the descriptor > structured size > position default
              > ``Medium``
decoration    token in the descriptor > ``3D Embroidery``
application   token in the descriptor > structured application
              > decoration default > ``Direct``
============  ==========================================================

When several tokens hit the same axis the last one wins. Tokens that hit
no axis are dropped and reported as a note; parsing itself never fails.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence, Tuple

from .errors import MergeAmbiguity
from .models import CompositeLogo, LogoDescriptor, SimpleLogo, normalize_name

DEFAULT_SIZE = "Medium"
DEFAULT_APPLICATION = "Direct"
DEFAULT_DECORATION = "3D Embroidery"

SIZES = {
    "Small": ("small", "sm"),
    "Medium": ("medium", "med", "mid"),
    "Large": ("large", "lg", "big"),
}

DECORATIONS = {
    "3D Embroidery": ("3d embroidery", "3d embroidered", "puff embroidery", "3d"),
    "Flat Embroidery": ("flat embroidery", "flat embroidered", "embroidery", "embroidered"),
    "Screen Print": ("screen print", "screen printed", "screen printing"),
    "Rubber Patch": ("rubber patch", "pvc patch", "rubber", "pvc"),
    "Leather Patch": ("leather patch", "leather"),
    "Woven Patch": ("woven patch", "woven"),
    "Printed Patch": ("printed patch",),
    "Sublimated Patch": ("sublimated patch",),
    "Sublimation": ("sublimation", "sublimated"),
    "Laser Cut": ("laser cut", "laser-cut", "lasercut"),
    "Heat Transfer": ("heat transfer",),
}

APPLICATIONS = {
    "Direct": ("direct",),
    "Run": ("run", "run stitch"),
    "Satin": ("satin", "satin stitch"),
    "Velcro": ("velcro",),
}

# Decorations that need a tooled mold; charged once per distinct pattern.
MOLD_DECORATIONS = frozenset({"Rubber Patch", "Leather Patch"})

_APPLICATION_BY_DECORATION = {
    "Rubber Patch": "Run",
    "Leather Patch": "Run",
    "Woven Patch": "Satin",
}

_SIZE_BY_POSITION = {
    "front": "Large",
    "back": "Small",
    "left": "Small",
    "right": "Small",
    "upper bill": "Medium",
    "under bill": "Large",
}

_SEPARATOR_RE = re.compile(r"\s*[+,;|&]\s*")


def _axis_pattern(vocabulary: dict) -> Tuple[re.Pattern, dict]:
    lookup = {}
    for canonical, aliases in vocabulary.items():
        lookup[canonical.lower()] = canonical
        for alias in aliases:
            lookup[alias] = canonical
    ordered = sorted(lookup, key=len, reverse=True)
    alternation = "|".join(re.escape(a) for a in ordered)
    return re.compile(rf"(?<![\w-])(?:{alternation})(?![\w-])", re.IGNORECASE), lookup


_SIZE_RE, _SIZE_LOOKUP = _axis_pattern(SIZES)
_DECORATION_RE, _DECORATION_LOOKUP = _axis_pattern(DECORATIONS)
_APPLICATION_RE, _APPLICATION_LOOKUP = _axis_pattern(APPLICATIONS)


def _last_match(pattern: re.Pattern, lookup: dict, text: str) -> Optional[str]:
    found = None
    for match in pattern.finditer(text):
        found = lookup[normalize_name(match.group(0))]
    return found


def _canonical(value: Optional[str], pattern: re.Pattern, lookup: dict) -> Optional[str]:
    """Canonical spelling of a structured value; unknown values pass through."""
    cleaned = " ".join((value or "").split())
    if not cleaned:
        return None
    if pattern.fullmatch(cleaned):
        return lookup[normalize_name(cleaned)]
    return cleaned


def canonical_size(value: Optional[str]) -> Optional[str]:
    return _canonical(value, _SIZE_RE, _SIZE_LOOKUP)


def canonical_decoration(value: Optional[str]) -> Optional[str]:
    return _canonical(value, _DECORATION_RE, _DECORATION_LOOKUP)


def canonical_application(value: Optional[str]) -> Optional[str]:
    return _canonical(value, _APPLICATION_RE, _APPLICATION_LOOKUP)


def default_application(decoration: str) -> str:
    return _APPLICATION_BY_DECORATION.get(decoration, DEFAULT_APPLICATION)


def default_size(position: Optional[str]) -> str:
    return _SIZE_BY_POSITION.get(normalize_name(position), DEFAULT_SIZE)


def tokenize(text: str) -> Tuple[str, ...]:
    return tuple(t for t in _SEPARATOR_RE.split(text or "") if t.strip())


def _is_composite(text: str) -> bool:
    tokens = tokenize(text)
    if len(tokens) != 1:
        return True
    # A single token is still composite when it carries more than a method,
    # e.g. "Large Laser Cut" or "3D Embroidery Run".
    if _DECORATION_RE.fullmatch(tokens[0].strip()):
        return False
    return bool(_SIZE_RE.search(tokens[0]) or _APPLICATION_RE.search(tokens[0]))


def describe_logo(
    logo_type: str,
    size: Optional[str] = None,
    application: Optional[str] = None,
    position: Optional[str] = None,
    pattern: Optional[str] = None,
) -> LogoDescriptor:
    """Build a descriptor from request fields.

    Plain method names become :class:`SimpleLogo` with missing axes filled
    from the position and decoration defaults; anything that looks like a
    composite string is kept as :class:`CompositeLogo` for :func:`parse_composite`.
    """
    if _is_composite(logo_type):
        return CompositeLogo(
            raw_tokens=tokenize(logo_type),
            position=position,
            size=size,
            application=application,
            pattern=pattern,
        )
    decoration = canonical_decoration(logo_type) or DEFAULT_DECORATION
    return SimpleLogo(
        decoration=decoration,
        size=canonical_size(size) or default_size(position),
        application=canonical_application(application) or default_application(decoration),
        position=position,
        pattern=pattern,
    )


def parse_composite(
    raw_tokens: Sequence[str] | str,
    *,
    size: Optional[str] = None,
    application: Optional[str] = None,
    position: Optional[str] = None,
    pattern: Optional[str] = None,
) -> Tuple[SimpleLogo, List[MergeAmbiguity]]:
    """Decompose a composite descriptor into a :class:`SimpleLogo`."""
    tokens: Iterable[str] = tokenize(raw_tokens) if isinstance(raw_tokens, str) else raw_tokens
    notes: List[MergeAmbiguity] = []
    found_size = found_decoration = found_application = None
    dropped: List[str] = []

    for token in tokens:
        hit = False
        value = _last_match(_SIZE_RE, _SIZE_LOOKUP, token)
        if value:
            found_size, hit = value, True
        value = _last_match(_DECORATION_RE, _DECORATION_LOOKUP, token)
        if value:
            found_decoration, hit = value, True
        value = _last_match(_APPLICATION_RE, _APPLICATION_LOOKUP, token)
        if value:
            found_application, hit = value, True
        if not hit and token.strip():
            dropped.append(token.strip())

    if dropped:
        notes.append(
            MergeAmbiguity("logos", f"Ignored unrecognized logo tokens: {', '.join(dropped)}")
        )
    if not (found_size or found_decoration or found_application):
        notes.append(
            MergeAmbiguity(
                "logos",
                "Logo descriptor had no recognizable size, method or application; "
                "using defaults",
            )
        )

    structured_size = canonical_size(size)
    structured_application = canonical_application(application)
    if found_application and structured_application and found_application != structured_application:
        notes.append(
            MergeAmbiguity(
                "logos",
                f"Application '{found_application}' in descriptor overrides "
                f"'{structured_application}'",
            )
        )
    if found_size and structured_size and found_size != structured_size:
        notes.append(
            MergeAmbiguity(
                "logos", f"Size '{found_size}' in descriptor overrides '{structured_size}'"
            )
        )

    decoration = found_decoration or DEFAULT_DECORATION
    logo = SimpleLogo(
        decoration=decoration,
        size=found_size or structured_size or default_size(position),
        application=found_application or structured_application or default_application(decoration),
        position=position,
        pattern=pattern,
    )
    return logo, notes


def resolve_logo(descriptor: LogoDescriptor) -> Tuple[SimpleLogo, List[MergeAmbiguity]]:
    """Return the canonical form of any descriptor plus diagnostic notes."""
    if isinstance(descriptor, SimpleLogo):
        return descriptor, []
    return parse_composite(
        descriptor.raw_tokens,
        size=descriptor.size,
        application=descriptor.application,
        position=descriptor.position,
        pattern=descriptor.pattern,
    )
