"""Merge a sparse conversational edit onto the previous quote specification.

Scalars in the delta replace the prior value; scalars the delta does not
mention carry forward. List fields change only through explicit
ADD / REMOVE / REPLACE_ALL edits, so a turn like "make it 150 pieces"
leaves logos, fabric, closure and accessories exactly as they were.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Tuple

from .errors import MergeAmbiguity, ValidationError
from .models import (
    MAX_QUANTITY,
    CompositeLogo,
    LogoDescriptor,
    QuoteSpecification,
    SimpleLogo,
    normalize_name,
)


class _Unset:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()

SCALAR_FIELDS = (
    ("quantity", "Quantity"),
    ("product_tier", "Product tier"),
    ("fabric", "Fabric"),
    ("closure", "Closure"),
    ("delivery_method", "Delivery"),
    ("previous_order_number", "Previous order"),
)


class ListOp(str, Enum):
    ADD = "ADD"
    REMOVE = "REMOVE"
    REPLACE_ALL = "REPLACE_ALL"


@dataclass(frozen=True)
class ListEdit:
    op: ListOp
    items: Tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "op", ListOp(self.op))
        object.__setattr__(self, "items", tuple(self.items))


@dataclass(frozen=True)
class SpecificationDelta:
    """Fields the user mentioned in one turn; everything else is ``UNSET``.

    Setting an optional scalar to ``None`` clears it. For ``logos`` a REMOVE
    item may be a position string or a descriptor.
    """

    quantity: Any = UNSET
    product_tier: Any = UNSET
    fabric: Any = UNSET
    closure: Any = UNSET
    delivery_method: Any = UNSET
    previous_order_number: Any = UNSET
    logos: Tuple[ListEdit, ...] = ()
    accessories: Tuple[ListEdit, ...] = ()
    colors: Tuple[ListEdit, ...] = ()

    def mentions(self, name: str) -> bool:
        value = getattr(self, name)
        if name in ("logos", "accessories", "colors"):
            return bool(value)
        return value is not UNSET


@dataclass(frozen=True)
class MergeResult:
    spec: QuoteSpecification
    change_log: Tuple[str, ...] = ()
    notes: Tuple[MergeAmbiguity, ...] = field(default_factory=tuple)


def _show(value: Any) -> str:
    if value is None or value == "":
        return "none"
    return str(value)


def describe_logo(logo: LogoDescriptor) -> str:
    if isinstance(logo, CompositeLogo):
        text = " + ".join(logo.raw_tokens) or "unspecified logo"
    else:
        text = f"{logo.size} {logo.decoration} ({logo.application})"
    if logo.position:
        text += f" at {logo.position}"
    return text


def _logo_identity(logo: LogoDescriptor) -> Any:
    if logo.position:
        return ("position", normalize_name(logo.position))
    return ("logo", logo)


def _is_logo(item: Any) -> bool:
    return isinstance(item, (SimpleLogo, CompositeLogo))


def _is_logo_reference(item: Any) -> bool:
    return isinstance(item, str) or _is_logo(item)


def _removal_identity(item: Any) -> Any:
    if isinstance(item, str):
        return ("position", normalize_name(item))
    return _logo_identity(item)


def _text_identity(item: Any) -> Any:
    return normalize_name(str(item))


def _apply_list_edits(
    label: str,
    current: Sequence[Any],
    edits: Sequence[ListEdit],
    identity: Callable[[Any], Any],
    removal_identity: Callable[[Any], Any],
    describe: Callable[[Any], str],
    replace_duplicates: bool,
    accepts: Optional[Callable[[Any], bool]] = None,
    accepts_removal: Optional[Callable[[Any], bool]] = None,
) -> Tuple[Tuple[Any, ...], List[str], List[MergeAmbiguity]]:
    items = list(current)
    changes: List[str] = []
    notes: List[MergeAmbiguity] = []
    field_name = label.lower()

    def usable(candidates: Sequence[Any], check: Optional[Callable[[Any], bool]]) -> List[Any]:
        if check is None:
            return list(candidates)
        kept = []
        for item in candidates:
            if check(item):
                kept.append(item)
            else:
                notes.append(MergeAmbiguity(field_name, f"Ignored {field_name} entry {item!r}"))
        return kept

    for edit in edits:
        if edit.op is ListOp.REPLACE_ALL:
            before = len(items)
            items = usable(edit.items, accepts)
            changes.append(f"{label}: replaced all ({before} → {len(items)})")
            continue
        if edit.op is ListOp.ADD:
            for new in usable(edit.items, accepts):
                key = identity(new)
                idx = next((i for i, old in enumerate(items) if identity(old) == key), None)
                if idx is None:
                    items.append(new)
                    changes.append(f"{label}: added {describe(new)}")
                elif replace_duplicates:
                    old = items[idx]
                    items[idx] = new
                    changes.append(f"{label}: {describe(old)} → {describe(new)}")
                    notes.append(
                        MergeAmbiguity(
                            field_name,
                            f"{describe(new)} replaces the existing {describe(old)}",
                        )
                    )
                else:
                    notes.append(
                        MergeAmbiguity(field_name, f"{describe(new)} is already on the order")
                    )
            continue
        for gone in usable(edit.items, accepts_removal):
            key = removal_identity(gone)
            kept = [old for old in items if identity(old) != key]
            if len(kept) == len(items):
                notes.append(
                    MergeAmbiguity(
                        field_name,
                        f"Cannot remove {gone if isinstance(gone, str) else describe(gone)}: not on the order",
                    )
                )
                continue
            removed = [old for old in items if identity(old) == key]
            items = kept
            for old in removed:
                changes.append(f"{label}: removed {describe(old)}")
    return tuple(items), changes, notes


def _check_quantity(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(
            "Quantity must be a positive integer", {"quantity": "must be a positive integer"}
        )
    if value > MAX_QUANTITY:
        raise ValidationError(
            f"Quantity must be at most {MAX_QUANTITY}",
            {"quantity": f"must be at most {MAX_QUANTITY}"},
        )
    return value


def merge_specification(
    prior: Optional[QuoteSpecification],
    delta: SpecificationDelta,
    *,
    default_quantity: int = 48,
    default_product_tier: str = "Tier 2",
) -> MergeResult:
    """Return a new specification with ``delta`` applied on top of ``prior``.

    Pure: ``prior`` is never modified and no state survives the call. With no
    prior the delta is completed from the defaults.
    """
    fresh = prior is None
    notes: List[MergeAmbiguity] = []
    change_log: List[str] = []

    if delta.mentions("quantity"):
        _check_quantity(delta.quantity)
    if delta.mentions("product_tier") and not (delta.product_tier or "").strip():
        raise ValidationError("Product tier cannot be empty", {"product_tier": "required"})

    if prior is None:
        base = QuoteSpecification(quantity=default_quantity, product_tier=default_product_tier)
        if not delta.mentions("quantity"):
            notes.append(
                MergeAmbiguity("quantity", f"No quantity given; defaulted to {default_quantity}")
            )
        if not delta.mentions("product_tier"):
            notes.append(
                MergeAmbiguity(
                    "product_tier", f"No product tier given; defaulted to {default_product_tier}"
                )
            )
    else:
        base = prior

    updates = {}
    for name, label in SCALAR_FIELDS:
        if not delta.mentions(name):
            continue
        new = getattr(delta, name)
        if isinstance(new, str):
            new = new.strip() or None
        old = getattr(base, name)
        updates[name] = new
        if fresh:
            if new is not None:
                change_log.append(f"{label}: {_show(new)}")
        elif new != old:
            change_log.append(f"{label}: {_show(old)} → {_show(new)}")

    logos, changes, list_notes = _apply_list_edits(
        "Logos",
        base.logos,
        delta.logos,
        _logo_identity,
        _removal_identity,
        describe_logo,
        replace_duplicates=True,
        accepts=_is_logo,
        accepts_removal=_is_logo_reference,
    )
    updates["logos"] = logos
    change_log.extend(changes)
    notes.extend(list_notes)

    for name, label in (("accessories", "Accessories"), ("colors", "Colors")):
        items, changes, list_notes = _apply_list_edits(
            label,
            getattr(base, name),
            getattr(delta, name),
            _text_identity,
            _text_identity,
            str,
            replace_duplicates=False,
        )
        updates[name] = items
        change_log.extend(changes)
        notes.extend(list_notes)

    merged = replace(base, **updates)
    return MergeResult(spec=merged, change_log=tuple(change_log), notes=tuple(notes))
