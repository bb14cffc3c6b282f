from io import BytesIO

import pytest
from PIL import Image

from utils.errors import EncodingError
from utils.qr_codec import encode_raster, render_qr
from utils.qr_params import resolve_params


def test_raster_has_requested_size_and_colors():
    params = resolve_params({"size": 300, "foregroundColor": "#112233", "backgroundColor": "#FAFAFA"})
    rendered = render_qr("https://example.com", params)

    assert rendered.kind == "raster"
    assert rendered.image.size == (300, 300)
    # Ecke liegt in der Ruhezone → Hintergrund
    assert rendered.image.getpixel((0, 0)) == (0xFA, 0xFA, 0xFA)
    colors = {c for _, c in rendered.image.getcolors(maxcolors=16)}
    assert (0x11, 0x22, 0x33) in colors


def test_without_quiet_zone_the_finder_pattern_touches_the_corner():
    params = resolve_params({"quietZone": 0})
    rendered = render_qr("hello", params)
    assert rendered.image.getpixel((0, 0)) == (0, 0, 0)


def test_svg_output_carries_colors():
    params = resolve_params({"format": "svg", "foregroundColor": "#FF0000", "backgroundColor": "#00FF00"})
    rendered = render_qr("hello", params)

    assert rendered.is_vector
    assert rendered.svg.startswith(b"<?xml")
    text = rendered.svg.decode("utf-8")
    assert "#FF0000" in text
    assert "#00FF00" in text


def test_format_override_renders_raster_for_svg_request():
    params = resolve_params({"format": "svg"})
    rendered = render_qr("hello", params, fmt="png")
    assert rendered.kind == "raster"


def test_payload_too_long_raises_encoding_error():
    params = resolve_params({"errorCorrectionLevel": "H"})
    with pytest.raises(EncodingError):
        render_qr("x" * 4000, params)


def test_utf8_payload_is_encoded():
    rendered = render_qr("Grüße aus Köln – 東京", resolve_params({}))
    assert rendered.image.size == (256, 256)


def test_encode_raster_png_and_jpeg():
    image = render_qr("hello", resolve_params({"size": 64})).image

    png = encode_raster(image, "png")
    assert png.startswith(b"\x89PNG")

    jpeg = encode_raster(image.convert("RGBA"), "jpeg")
    assert jpeg.startswith(b"\xff\xd8")
    assert Image.open(BytesIO(jpeg)).size == (64, 64)


def test_overflow_reported_as_value_error_becomes_encoding_error(monkeypatch):
    import qrcode

    def overflow(self, fit=True):
        raise ValueError("Invalid version (was 41, expected 1 to 40)")

    monkeypatch.setattr(qrcode.QRCode, "make", overflow)
    with pytest.raises(EncodingError) as exc:
        render_qr("hello", resolve_params({"errorCorrectionLevel": "Q"}))
    assert "Q" in exc.value.error
