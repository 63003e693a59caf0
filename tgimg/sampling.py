"""Pixel extraction and area downsampling into the thumbnail work grid.

Every function here returns a float32 array of shape (height, width, 4)
holding straight (non-premultiplied) RGBA values in [0, 1].
"""

from __future__ import annotations

import math

import numpy as np
from PIL import Image

MAX_THUMB_DIM = 100

_F255 = np.float32(255)
_F1 = np.float32(1)


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _lut(coefficient: float) -> np.ndarray:
    return np.array(
        [_round_half_away(coefficient * (i - 128.0)) for i in range(256)],
        dtype=np.int64,
    )


# Chroma contributions for YCbCr -> RGB, indexed by the 8-bit chroma sample.
_CR_R = _lut(1.40200)
_CB_G = _lut(0.34414)
_CR_G = _lut(0.71414)
_CB_B = _lut(1.77200)


def thumb_dims(src_w: int, src_h: int) -> tuple[int, int]:
    """Size of the thumbnail grid: at most MAX_THUMB_DIM on the longer side."""
    if src_w <= MAX_THUMB_DIM and src_h <= MAX_THUMB_DIM:
        return src_w, src_h
    if src_w >= src_h:
        return MAX_THUMB_DIM, max(1, src_h * MAX_THUMB_DIM // src_w)
    return max(1, src_w * MAX_THUMB_DIM // src_h), MAX_THUMB_DIM


def src_span(d: int, dst_size: int, src_size: int) -> tuple[int, int]:
    """Half-open source range [s0, s1) covered by destination index *d*."""
    s0 = d * src_size // dst_size
    s1 = (d + 1) * src_size // dst_size
    if s1 <= s0:
        s1 = s0 + 1
    return s0, min(s1, src_size)


def _pixels(image: Image.Image, channels: int) -> np.ndarray:
    w, h = image.size
    return np.frombuffer(image.tobytes(), dtype=np.uint8).reshape(h, w, channels)


def _ycbcr_to_rgb_ints(pix: np.ndarray) -> np.ndarray:
    y = pix[..., 0].astype(np.int64)
    cb = pix[..., 1]
    cr = pix[..., 2]
    return np.stack(
        [y + _CR_R[cr], y - _CB_G[cb] - _CR_G[cr], y + _CB_B[cb]], axis=-1
    )


def _stack_rgba(rgb: np.ndarray, alpha: np.ndarray) -> np.ndarray:
    out = np.empty(rgb.shape[:2] + (4,), dtype=np.float32)
    out[..., :3] = rgb
    out[..., 3] = alpha
    return out


def _safe_div(num: np.ndarray, den: np.ndarray) -> np.ndarray:
    out = np.zeros(np.broadcast_shapes(num.shape, den.shape), dtype=np.float32)
    np.divide(num, den, out=out, where=np.broadcast_to(den > 0, out.shape))
    return out


def extract_pixels(image: Image.Image) -> np.ndarray:
    """Return the image's pixels as straight RGBA floats without resampling."""
    mode = image.mode
    if mode == "RGBA":
        return _pixels(image, 4).astype(np.float32) / _F255
    if mode == "RGBa":
        pix = _pixels(image, 4).astype(np.float32)
        alpha = pix[..., 3]
        rgb = _safe_div(pix[..., :3], alpha[..., None])
        return _stack_rgba(rgb, alpha / _F255)
    if mode == "YCbCr":
        rgb = np.clip(_ycbcr_to_rgb_ints(_pixels(image, 3)), 0, 255)
        ones = np.ones(rgb.shape[:2], dtype=np.float32)
        return _stack_rgba(rgb.astype(np.float32) / _F255, ones)
    if mode == "L":
        v = _pixels(image, 1)[..., 0].astype(np.float32) / _F255
        return _stack_rgba(np.repeat(v[..., None], 3, axis=-1), np.ones_like(v))
    return extract_pixels(image.convert("RGBA"))


def _spans(dst_size: int, src_size: int) -> tuple[np.ndarray, np.ndarray]:
    pairs = [src_span(d, dst_size, src_size) for d in range(dst_size)]
    starts, ends = zip(*pairs)
    return np.array(starts, dtype=np.int64), np.array(ends, dtype=np.int64)


def _box_sums(values: np.ndarray, dst_w: int, dst_h: int) -> tuple[np.ndarray, np.ndarray]:
    """Sum *values* (H, W, C) over each destination cell; also return cell counts."""
    src_h, src_w = values.shape[:2]
    y0, y1 = _spans(dst_h, src_h)
    x0, x1 = _spans(dst_w, src_w)

    acc = np.zeros((src_h + 1,) + values.shape[1:], dtype=np.int64)
    np.cumsum(values, axis=0, dtype=np.int64, out=acc[1:])
    rows = acc[y1] - acc[y0]

    acc = np.zeros((dst_h, src_w + 1) + values.shape[2:], dtype=np.int64)
    np.cumsum(rows, axis=1, dtype=np.int64, out=acc[:, 1:])
    sums = acc[:, x1] - acc[:, x0]

    counts = (y1 - y0)[:, None] * (x1 - x0)[None, :]
    return sums, counts


def area_downscale(image: Image.Image, dst_w: int, dst_h: int) -> np.ndarray:
    """Average the image over a dst_w x dst_h grid of source boxes."""
    src_w, src_h = image.size
    if src_w <= 0 or src_h <= 0:
        raise ValueError(f"cannot downscale an empty {src_w}x{src_h} image")
    if dst_w <= 0 or dst_h <= 0:
        raise ValueError(f"invalid target size {dst_w}x{dst_h}")

    mode = image.mode
    if mode == "RGBA":
        sums, counts = _box_sums(_pixels(image, 4), dst_w, dst_h)
        inv = _F1 / (counts.astype(np.float32) * _F255)
        return sums.astype(np.float32) * inv[..., None]
    if mode == "RGBa":
        sums, counts = _box_sums(_pixels(image, 4), dst_w, dst_h)
        fsums = sums.astype(np.float32)
        alpha_sum = fsums[..., 3]
        rgb = _safe_div(fsums[..., :3], alpha_sum[..., None])
        alpha = alpha_sum / (counts.astype(np.float32) * _F255)
        return _stack_rgba(rgb, alpha)
    if mode == "YCbCr":
        sums, counts = _box_sums(_ycbcr_to_rgb_ints(_pixels(image, 3)), dst_w, dst_h)
        inv = _F1 / (counts.astype(np.float32) * _F255)
        rgb = np.clip(sums.astype(np.float32) * inv[..., None], 0, 1)
        return _stack_rgba(rgb, np.ones((dst_h, dst_w), dtype=np.float32))
    if mode == "L":
        sums, counts = _box_sums(_pixels(image, 1), dst_w, dst_h)
        v = sums[..., 0].astype(np.float32) / (counts.astype(np.float32) * _F255)
        return _stack_rgba(np.repeat(v[..., None], 3, axis=-1), np.ones_like(v))
    return area_downscale(image.convert("RGBA"), dst_w, dst_h)