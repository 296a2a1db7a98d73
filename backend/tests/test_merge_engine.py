import pytest

from capquote.services.pricing.errors import ValidationError
from capquote.services.pricing.merge import (
    ListEdit,
    ListOp,
    SpecificationDelta,
    merge_specification,
)
from capquote.services.pricing.models import (
    MAX_QUANTITY,
    CompositeLogo,
    QuoteSpecification,
    SimpleLogo,
)

FRONT = SimpleLogo("3D Embroidery", "Large", "Direct", "Front")
BACK = SimpleLogo("Flat Embroidery", "Small", "Direct", "Back")
LEFT = SimpleLogo("Rubber Patch", "Small", "Run", "Left")


@pytest.fixture
def prior():
    return QuoteSpecification(
        quantity=600,
        product_tier="Tier 2",
        colors=("Black", "White"),
        fabric="Polyester/Laser Cut",
        logos=(FRONT, BACK),
        closure="Fitted",
        accessories=("Hang Tag",),
        delivery_method="Regular Delivery",
    )


def test_quantity_only_delta_preserves_everything_else(prior):
    result = merge_specification(prior, SpecificationDelta(quantity=150))
    assert result.spec.quantity == 150
    assert result.spec.logos == (FRONT, BACK)
    assert result.spec.fabric == "Polyester/Laser Cut"
    assert result.spec.closure == "Fitted"
    assert result.spec.accessories == ("Hang Tag",)
    assert result.spec.colors == ("Black", "White")
    assert result.spec.delivery_method == "Regular Delivery"
    assert result.change_log == ("Quantity: 600 → 150",)
    assert result.notes == ()


def test_prior_is_never_mutated(prior):
    snapshot = prior.as_dict()
    merge_specification(prior, SpecificationDelta(quantity=1, logos=(ListEdit(ListOp.REPLACE_ALL, ()),)))
    assert prior.as_dict() == snapshot


def test_scalar_replacement_and_clearing(prior):
    result = merge_specification(
        prior, SpecificationDelta(fabric="Acrylic", closure=None, product_tier="Tier 1")
    )
    assert result.spec.fabric == "Acrylic"
    assert result.spec.closure is None
    assert result.spec.product_tier == "Tier 1"
    assert "Closure: Fitted → none" in result.change_log
    assert "Fabric: Polyester/Laser Cut → Acrylic" in result.change_log


def test_remove_logo_by_position_preserves_order():
    prior = QuoteSpecification(quantity=144, product_tier="Tier 2", logos=(FRONT, BACK, LEFT))
    result = merge_specification(
        prior, SpecificationDelta(logos=(ListEdit(ListOp.REMOVE, ("back",)),))
    )
    assert result.spec.logos == (FRONT, LEFT)
    assert result.change_log == ("Logos: removed Small Flat Embroidery (Direct) at Back",)


def test_add_logo_appends(prior):
    result = merge_specification(prior, SpecificationDelta(logos=(ListEdit(ListOp.ADD, (LEFT,)),)))
    assert result.spec.logos == (FRONT, BACK, LEFT)


def test_add_logo_at_occupied_position_replaces_in_place(prior):
    patch = SimpleLogo("Leather Patch", "Large", "Run", "front")
    result = merge_specification(prior, SpecificationDelta(logos=(ListEdit(ListOp.ADD, (patch,)),)))
    assert result.spec.logos == (patch, BACK)
    assert result.notes and result.notes[0].field == "logos"


def test_replace_all_logos(prior):
    composite = CompositeLogo(("Large", "Laser Cut"), position="Front")
    result = merge_specification(
        prior, SpecificationDelta(logos=(ListEdit(ListOp.REPLACE_ALL, (composite,)),))
    )
    assert result.spec.logos == (composite,)
    assert result.change_log == ("Logos: replaced all (2 → 1)",)


def test_remove_missing_item_is_a_note_not_an_error(prior):
    result = merge_specification(
        prior, SpecificationDelta(accessories=(ListEdit(ListOp.REMOVE, ("Sticker",)),))
    )
    assert result.spec.accessories == ("Hang Tag",)
    assert result.change_log == ()
    assert "Sticker" in result.notes[0].message


def test_duplicate_accessory_add_is_skipped(prior):
    result = merge_specification(
        prior,
        SpecificationDelta(accessories=(ListEdit(ListOp.ADD, ("hang tag", "Sticker")),)),
    )
    assert result.spec.accessories == ("Hang Tag", "Sticker")
    assert result.change_log == ("Accessories: added Sticker",)
    assert len(result.notes) == 1


def test_color_edits(prior):
    result = merge_specification(
        prior,
        SpecificationDelta(
            colors=(
                ListEdit(ListOp.REMOVE, ("white",)),
                ListEdit(ListOp.ADD, ("Navy",)),
            )
        ),
    )
    assert result.spec.colors == ("Black", "Navy")


def test_fresh_spec_fills_defaults():
    result = merge_specification(None, SpecificationDelta(fabric="Acrylic"))
    assert result.spec.quantity == 48
    assert result.spec.product_tier == "Tier 2"
    assert result.spec.fabric == "Acrylic"
    assert result.spec.logos == ()
    assert {n.field for n in result.notes} == {"quantity", "product_tier"}
    assert result.change_log == ("Fabric: Acrylic",)


def test_fresh_spec_with_custom_defaults():
    result = merge_specification(
        None, SpecificationDelta(quantity=300), default_quantity=100, default_product_tier="Tier 1"
    )
    assert result.spec.quantity == 300
    assert result.spec.product_tier == "Tier 1"


def test_unchanged_scalar_is_not_logged(prior):
    result = merge_specification(prior, SpecificationDelta(quantity=600))
    assert result.change_log == ()


@pytest.mark.parametrize("bad", [0, -5, "150", True, MAX_QUANTITY + 1, 10**27])
def test_invalid_quantity_is_rejected(prior, bad):
    with pytest.raises(ValidationError) as exc:
        merge_specification(prior, SpecificationDelta(quantity=bad))
    assert "quantity" in exc.value.field_errors


def test_logo_positions_cannot_be_added(prior):
    result = merge_specification(
        prior, SpecificationDelta(logos=(ListEdit(ListOp.ADD, ("Front", LEFT)),))
    )
    assert result.spec.logos == (FRONT, BACK, LEFT)
    assert any("'Front'" in note.message for note in result.notes)


def test_replace_all_logos_keeps_only_logo_objects(prior):
    result = merge_specification(
        prior, SpecificationDelta(logos=(ListEdit(ListOp.REPLACE_ALL, ("Front",)),))
    )
    assert result.spec.logos == ()
    assert [note.field for note in result.notes] == ["logos"]


def test_list_edit_accepts_string_ops():
    edit = ListEdit("ADD", ["Navy"])
    assert edit.op is ListOp.ADD
    assert edit.items == ("Navy",)
