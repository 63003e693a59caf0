"""ThumbHash placeholders: a 20-35 byte DCT summary of an image.

Arithmetic runs in float32 with sequential accumulation so that identical
pixels always give identical bytes.
"""

from __future__ import annotations

import math
import struct

import numpy as np
from PIL import Image

from tgimg.sampling import area_downscale, extract_pixels, thumb_dims

_F = np.float32
_ALPHA_MODES = frozenset({"RGBA", "RGBa", "LA", "La", "PA"})


def _round(value: float) -> int:
    """Round half away from zero."""
    whole = math.trunc(value)
    if abs(value - whole) >= 0.5:
        whole += 1 if value > 0 else -1
    return int(whole)


def _seq_sum(values: np.ndarray) -> np.float32:
    """Left-to-right float32 sum."""
    return np.cumsum(values.ravel(), dtype=np.float32)[-1]


def _cos_table(n: int, size: int) -> np.ndarray:
    positions = np.arange(size, dtype=np.float64) + 0.5
    rows = [np.cos((math.pi * c / size) * positions) for c in range(n)]
    return np.array(rows, dtype=np.float64).astype(np.float32)


def _encode_channel(
    channel: np.ndarray, nx: int, ny: int, cos_x: np.ndarray, cos_y: np.ndarray
) -> tuple[np.ndarray, np.float32, np.float32]:
    """DCT of one channel: returns (normalised AC, AC scale, DC)."""
    h, w = channel.shape
    products = (channel[None, None, :, :] * cos_x[None, :nx, None, :]) * cos_y[
        :ny, None, :, None
    ]
    sums = np.cumsum(products.reshape(ny, nx, h * w), axis=-1, dtype=np.float32)[..., -1]
    coeffs = (sums / _F(w * h)).astype(np.float32).reshape(-1)
    dc = coeffs[0]
    ac = coeffs[1:]
    scale = np.abs(ac).max() if ac.size else _F(0)
    if scale > 0:
        ac = ac * (_F(1) / scale)
    return ac.astype(np.float32), _F(scale), _F(dc)


def _assemble(rgba: np.ndarray) -> bytes:
    h, w = rgba.shape[:2]
    count = w * h
    alpha = rgba[..., 3]

    avg_a = _seq_sum(alpha) / _F(count)
    alpha_present = bool(avg_a < 1)

    max_wh = max(w, h)

    def scaled(k: int, n: int) -> int:
        return max(1, _round(float(_F(k * n) / _F(max_wh))))

    l_limit = 5 if alpha_present else 7
    lx, ly = scaled(l_limit, w), scaled(l_limit, h)
    px, py = scaled(3, w), scaled(3, h)
    ax, ay = (scaled(5, w), scaled(5, h)) if alpha_present else (0, 0)

    r = rgba[..., 0] * alpha
    g = rgba[..., 1] * alpha
    b = rgba[..., 2] * alpha
    lum = (r + g + b) / _F(3)
    p_chan = (r + g) / _F(2) - b
    q_chan = r - g

    cos_x = _cos_table(max(lx, px, ax), w)
    cos_y = _cos_table(max(ly, py, ay), h)

    l_ac, l_scale, l_dc = _encode_channel(lum, lx, ly, cos_x, cos_y)
    p_ac, p_scale, p_dc = _encode_channel(p_chan, px, py, cos_x, cos_y)
    q_ac, q_scale, q_dc = _encode_channel(q_chan, px, py, cos_x, cos_y)
    acs = [l_ac, p_ac, q_ac]

    is_landscape = w > h
    header = (
        _round(float(l_dc) * 63)
        | _round(float(p_dc) * 31 + 31) << 6
        | _round(float(q_dc) * 31 + 31) << 12
        | _round(float(l_scale) * 31) << 18
        | int(alpha_present) << 23
        | (ly if is_landscape else lx) << 24
        | int(is_landscape) << 28
    )
    header2 = _round(float(p_scale) * 63) | _round(float(q_scale) * 63) << 6

    out = struct.pack("<IH", header & 0xFFFFFFFF, header2 & 0xFFFF)
    if alpha_present:
        a_ac, a_scale, a_dc = _encode_channel(alpha, ax, ay, cos_x, cos_y)
        acs.append(a_ac)
        alpha_header = _round(float(a_dc) * 15) | _round(float(a_scale) * 15) << 4
        out += struct.pack("<H", alpha_header & 0xFFFF)

    coeffs = np.concatenate(acs).astype(np.float32)
    clamped = np.clip(coeffs / _F(2) + _F(0.5), _F(0), _F(1))
    nibbles = np.floor(clamped.astype(np.float64) * 15 + 0.5).astype(np.int64)
    if nibbles.size % 2:
        nibbles = np.append(nibbles, 0)
    packed = nibbles[0::2] | (nibbles[1::2] << 4)
    return out + bytes(packed.astype(np.uint8).tolist())


def encode(image: Image.Image) -> bytes:
    """Return the ThumbHash of *image*; empty bytes for an empty image."""
    src_w, src_h = image.size
    if src_w <= 0 or src_h <= 0:
        return b""
    dst_w, dst_h = thumb_dims(src_w, src_h)
    if src_w <= dst_w and src_h <= dst_h:
        rgba = extract_pixels(image)
    else:
        rgba = area_downscale(image, dst_w, dst_h)
    return _assemble(np.asarray(rgba, dtype=np.float32))


def has_alpha(image: Image.Image) -> bool:
    """Report whether any pixel is less than fully opaque."""
    w, h = image.size
    if w <= 0 or h <= 0:
        return False
    if image.mode in _ALPHA_MODES:
        low, _ = image.getchannel("A").getextrema()
        return low < 255
    if "transparency" in image.info:
        return has_alpha(image.convert("RGBA"))
    return False


def to_rgba(image: Image.Image) -> Image.Image:
    """Return the image in straight RGBA mode, unchanged if it already is."""
    if image.mode == "RGBA":
        return image
    return image.convert("RGBA")