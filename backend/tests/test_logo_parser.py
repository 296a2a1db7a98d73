from capquote.services.pricing.logo_parser import (
    describe_logo,
    parse_composite,
    resolve_logo,
    tokenize,
)
from capquote.services.pricing.models import CompositeLogo, SimpleLogo


def test_composite_application_token_overrides_structured_field():
    logo, notes = parse_composite(
        "Large Size Embroidery + 3D Embroidery + Run", application="Direct"
    )
    assert logo.application == "Run"
    assert logo.size == "Large"
    assert logo.decoration == "3D Embroidery"
    assert any("overrides 'Direct'" in n.message for n in notes)


def test_last_match_wins_per_axis():
    logo, _ = parse_composite("Small Flat Embroidery + Large + Rubber Patch + Satin + Run")
    assert logo.size == "Large"
    assert logo.decoration == "Rubber Patch"
    assert logo.application == "Run"


def test_unrecognized_tokens_are_dropped_with_a_note():
    logo, notes = parse_composite("Laser Cut + Glitter Bomb + Medium")
    assert logo == SimpleLogo("Laser Cut", "Medium", "Direct")
    assert any("Glitter Bomb" in n.message for n in notes)


def test_empty_descriptor_yields_defaults_and_note():
    logo, notes = parse_composite("")
    assert logo.size == "Medium"
    assert logo.application == "Direct"
    assert logo.decoration
    assert notes


def test_structured_values_fill_axes_missing_from_composite():
    logo, notes = parse_composite("3D Embroidery + Front", size="Small", application="Run")
    assert logo.size == "Small"
    assert logo.application == "Run"
    assert not any("overrides" in n.message for n in notes)


def test_matching_is_case_insensitive():
    logo, _ = parse_composite("LARGE laser cut + direct")
    assert logo == SimpleLogo("Laser Cut", "Large", "Direct")


def test_tokenize_splits_on_separators():
    assert tokenize("A + B, C; D | E & F") == ("A", "B", "C", "D", "E", "F")


def test_plain_method_becomes_simple_logo_with_defaults():
    logo = describe_logo("rubber patch", position="Back")
    assert logo == SimpleLogo("Rubber Patch", "Small", "Run", "Back")
    assert describe_logo("Woven Patch").application == "Satin"
    assert describe_logo("Laser Cut", size="Large").application == "Direct"
    assert describe_logo("3D Embroidery", position="Front").size == "Large"


def test_structured_input_is_used_as_is():
    logo = describe_logo("Laser Cut", size="Small", application="Run", position="Left")
    assert logo == SimpleLogo("Laser Cut", "Small", "Run", "Left")


def test_descriptor_with_extra_axes_is_composite():
    descriptor = describe_logo("Large 3D Embroidery + Run", application="Direct", position="Front")
    assert isinstance(descriptor, CompositeLogo)
    logo, _ = resolve_logo(descriptor)
    assert logo == SimpleLogo("3D Embroidery", "Large", "Run", "Front")


def test_unknown_method_passes_through_for_lookup():
    logo = describe_logo("Hologram")
    assert isinstance(logo, SimpleLogo)
    assert logo.decoration == "Hologram"


def test_resolve_simple_logo_has_no_notes():
    logo = SimpleLogo("Laser Cut", "Large", "Direct")
    assert resolve_logo(logo) == (logo, [])
