import io
from unittest import mock

import pytest
from PIL import Image

from tgimg.encoders import (
    AVIFEncoder,
    EncodeError,
    EncoderRegistry,
    JPEGEncoder,
    PNGEncoder,
    WebPEncoder,
)


def _gradient(w=32, h=24, mode="RGB"):
    img = Image.new("RGB", (w, h))
    img.putdata([(x * 8 % 256, y * 10 % 256, 128) for y in range(h) for x in range(w)])
    return img.convert(mode)


def _decode(data):
    img = Image.open(io.BytesIO(data))
    img.load()
    return img


def test_jpeg_roundtrip_size_and_format():
    data = JPEGEncoder().encode(_gradient(), 85)
    img = _decode(data)
    assert img.format == "JPEG"
    assert img.size == (32, 24)


@pytest.mark.parametrize("bad", [0, -5, 101])
def test_jpeg_out_of_range_quality_uses_default(bad):
    enc = JPEGEncoder()
    img = _gradient()
    assert enc.encode(img, bad) == enc.encode(img, 82)


def test_jpeg_transparent_pixels_become_black():
    img = Image.new("RGBA", (16, 16), (255, 0, 0, 0))
    out = _decode(JPEGEncoder().encode(img, 90)).convert("RGB")
    r, g, b = out.getpixel((8, 8))
    assert r < 10 and g < 10 and b < 10


def test_png_lossless_roundtrip_with_alpha():
    img = Image.new("RGBA", (5, 4))
    img.putdata([(x * 40, y * 50, 7, (x + y) * 20) for y in range(4) for x in range(5)])
    out = _decode(PNGEncoder().encode(img, 0))
    assert out.format == "PNG"
    assert list(out.convert("RGBA").getdata()) == list(img.getdata())


def test_png_ignores_quality():
    enc = PNGEncoder()
    img = _gradient()
    assert enc.encode(img, 10) == enc.encode(img, 90)


def test_builtin_encoders_format_names():
    assert [e.format for e in (AVIFEncoder(), WebPEncoder(), JPEGEncoder(), PNGEncoder())] == [
        "avif", "webp", "jpeg", "png",
    ]
    assert JPEGEncoder().extension == "jpeg"


def test_webp_unavailable_raises():
    with mock.patch("tgimg.encoders.shutil.which", return_value=None):
        enc = WebPEncoder()
        assert enc.available() is False
        with pytest.raises(EncodeError, match="cwebp not found"):
            enc.encode(_gradient(), 80)


def test_avif_unavailable_raises():
    with mock.patch("tgimg.encoders.shutil.which", return_value=None):
        enc = AVIFEncoder()
        assert enc.available() is False
        with pytest.raises(EncodeError, match="avifenc not found"):
            enc.encode(_gradient(), 80)


def test_external_tool_launch_failure_raises(tmp_path):
    missing = str(tmp_path / "no-such-tool")
    with mock.patch("tgimg.encoders.shutil.which", return_value=missing):
        enc = WebPEncoder()
        assert enc.available() is True
        with pytest.raises(EncodeError, match="cwebp"):
            enc.encode(_gradient(), 80)


def test_availability_probed_once(tmp_path):
    tool = str(tmp_path / "avifenc")
    with mock.patch("tgimg.encoders.shutil.which", return_value=tool) as which:
        enc = AVIFEncoder()
        first = enc.available()
    with mock.patch("tgimg.encoders.shutil.which", return_value=None):
        second = enc.available()
    assert [first, second] == [True, True]
    assert which.call_count == 1


def _std_registry():
    return EncoderRegistry([JPEGEncoder(), PNGEncoder()])


def test_registry_available_priority_order():
    reg = EncoderRegistry([PNGEncoder(), JPEGEncoder()])
    assert reg.available() == ["jpeg", "png"]
    assert str(reg) == "encoders: jpeg, png"


def test_registry_empty_string():
    assert str(EncoderRegistry([])) == "no encoders available"


def test_registry_get_case_insensitive():
    reg = _std_registry()
    assert reg.get("JPEG").format == "jpeg"
    assert reg.get("webp") is None


def test_registry_skips_unavailable():
    with mock.patch("tgimg.encoders.shutil.which", return_value=None):
        reg = EncoderRegistry()
    assert reg.available() == ["jpeg", "png"]


def test_resolve_filters_and_dedupes():
    reg = _std_registry()
    assert reg.resolve_formats(["webp", "JPEG", "jpeg"], False) == ["jpeg"]


def test_resolve_fallback_jpeg_when_none_available():
    reg = _std_registry()
    assert reg.resolve_formats(["avif", "webp"], False) == ["jpeg"]


def test_resolve_alpha_adds_png():
    reg = _std_registry()
    assert reg.resolve_formats(["webp", "jpeg"], True) == ["jpeg", "png"]


def test_resolve_alpha_png_already_requested():
    reg = _std_registry()
    assert reg.resolve_formats(["png", "jpeg"], True) == ["png", "jpeg"]


def test_resolve_nothing_without_encoders():
    assert EncoderRegistry([]).resolve_formats(["jpeg"], True) == []