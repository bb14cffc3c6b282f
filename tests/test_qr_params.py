import pytest

from utils.errors import ValidationError
from utils.qr_params import (
    KIND_BULK,
    KIND_DYNAMIC,
    KIND_STATIC,
    canonical_hash,
    output_format,
    resolve_params,
    resolve_request,
)


def test_defaults_are_applied():
    params = resolve_params({})
    assert params.size == 256
    assert params.format == "png"
    assert params.foreground_color == "#000000"
    assert params.background_color == "#FFFFFF"
    assert params.logo_url is None
    assert params.logo_scale == 0.2
    assert params.logo_margin == 4
    assert params.quiet_zone == 4
    assert params.error_correction_level == "M"


def test_hash_ignores_key_order():
    a = resolve_request({"data": "hello", "size": 300, "foregroundColor": "#112233"}, KIND_STATIC)
    b = resolve_request({"foregroundColor": "#112233", "size": 300, "data": "hello"}, KIND_STATIC)
    assert canonical_hash(a.payload, a.params) == canonical_hash(b.payload, b.params)


def test_hash_treats_defaults_and_explicit_values_alike():
    implicit = resolve_request({"data": "hello"}, KIND_STATIC)
    explicit = resolve_request({"data": "hello", "size": 256, "format": "png", "quietZone": 4}, KIND_STATIC)
    assert canonical_hash(implicit.payload, implicit.params) == canonical_hash(explicit.payload, explicit.params)


def test_hash_changes_with_parameters():
    a = resolve_request({"data": "hello"}, KIND_STATIC)
    b = resolve_request({"data": "hello", "errorCorrectionLevel": "H"}, KIND_STATIC)
    c = resolve_request({"data": "hello!"}, KIND_STATIC)
    hashes = {canonical_hash(r.payload, r.params) for r in (a, b, c)}
    assert len(hashes) == 3


def test_colors_are_normalised():
    params = resolve_params({"foregroundColor": "#abc", "backgroundColor": "#ffeedd"})
    assert params.foreground_color == "#AABBCC"
    assert params.background_color == "#FFEEDD"


def test_format_and_level_are_case_insensitive():
    params = resolve_params({"format": "JPG", "errorCorrectionLevel": "q"})
    assert params.format == "jpeg"
    assert params.error_correction_level == "Q"


@pytest.mark.parametrize(
    "raw",
    [
        {"size": 10},
        {"size": 5000},
        {"size": "gross"},
        {"format": "gif"},
        {"foregroundColor": "red"},
        {"logoScale": 0},
        {"logoScale": 1.5},
        {"logoMargin": -1},
        {"quietZone": 40},
        {"errorCorrectionLevel": "X"},
        {"logoUrl": "not-a-url"},
        {"logoUrl": "ftp://example.com/logo.png"},
    ],
)
def test_invalid_customization_is_rejected(raw):
    with pytest.raises(ValidationError):
        resolve_params(raw)


def test_static_and_bulk_require_data():
    for kind in (KIND_STATIC, KIND_BULK):
        with pytest.raises(ValidationError) as exc:
            resolve_request({"size": 300}, kind)
        assert exc.value.error == '"data" is required'


def test_dynamic_requires_target_url():
    with pytest.raises(ValidationError) as exc:
        resolve_request({}, KIND_DYNAMIC)
    assert exc.value.message == "Missing required field"


@pytest.mark.parametrize("target", ["example.com", "https://", "javascript:alert(1)", "mailto:a@b.de"])
def test_dynamic_rejects_invalid_target_url(target):
    with pytest.raises(ValidationError) as exc:
        resolve_request({"targetUrl": target}, KIND_DYNAMIC)
    assert exc.value.message == "Invalid URL format"


def test_dynamic_accepts_absolute_url():
    request = resolve_request({"targetUrl": " https://example.com/a?b=1 "}, KIND_DYNAMIC)
    assert request.payload == "https://example.com/a?b=1"


def test_bulk_job_must_be_an_object():
    with pytest.raises(ValidationError):
        resolve_request("hello", KIND_BULK)


def test_svg_with_logo_is_substituted_by_png():
    assert output_format(resolve_params({"format": "svg"})) == ("svg", False)
    assert output_format(resolve_params({"format": "svg", "logoUrl": "https://cdn.example.com/l.png"})) == ("png", True)
    assert output_format(resolve_params({"format": "jpeg", "logoUrl": "https://cdn.example.com/l.png"})) == ("jpeg", False)


def test_wire_form_uses_camel_case():
    wire = resolve_params({"logoBackgroundColor": "#fff"}).to_wire()
    assert wire["logoBackgroundColor"] == "#FFFFFF"
    assert set(wire) >= {"foregroundColor", "quietZone", "errorCorrectionLevel", "logoScale"}
