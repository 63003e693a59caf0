"""Processing of one source image: decode, placeholder, resize, encode, write."""

from __future__ import annotations

import base64
import contextlib
import sys
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image

from tgimg.encoders import EncodeError, EncoderRegistry
from tgimg.hasher import content_hash
from tgimg.manifest import Asset, OriginalInfo, Variant
from tgimg.scanner import Source
from tgimg.thumbhash import encode as thumbhash_encode
from tgimg.thumbhash import has_alpha, to_rgba

if TYPE_CHECKING:
    from tgimg.pipeline import PipelineConfig

_DECODE_ERRORS = (OSError, ValueError, SyntaxError, EOFError, Image.DecompressionBombError)


@dataclass
class ProcessResult:
    """The asset built from one source image."""

    key: str
    asset: Asset
    skipped_regress: int = 0


def _log(message: str) -> None:
    print(f"[tgimg] {message}", file=sys.stderr)


def _decode(source: Source) -> Image.Image:
    try:
        handle = open(source.abs_path, "rb")
    except OSError as exc:
        raise OSError(f"open {source.rel_path}: {exc}") from exc
    with handle:
        try:
            with Image.open(handle) as opened:
                opened.load()
                return opened.copy()
        except _DECODE_ERRORS as exc:
            raise OSError(f"decode {source.rel_path}: {exc}") from exc


def compute_avg_color(image: Image.Image) -> tuple[int, int, int]:
    """Average of the alpha-premultiplied 8-bit RGB channels."""
    w, h = image.size
    count = w * h
    if count == 0:
        return (0, 0, 0)
    rgba = np.asarray(to_rgba(image)).astype(np.uint64)
    alpha = rgba[..., 3:4]
    premultiplied = (rgba[..., :3] * 257 * alpha // 255) >> 8
    sums = premultiplied.sum(axis=(0, 1))
    r, g, b = (int(s) // count for s in sums)
    return (r, g, b)


def process_image(
    source: Source, config: PipelineConfig, registry: EncoderRegistry
) -> ProcessResult:
    """Build the asset for *source*, writing its variants under the output dir.

    Raises OSError when the image cannot be read, decoded or written.
    Variants that fail to encode are left out.
    """
    image = _decode(source)
    orig_w, orig_h = image.size
    alpha = has_alpha(image)

    asset = Asset(
        original=OriginalInfo(
            width=orig_w,
            height=orig_h,
            format=source.format,
            size=source.size,
            has_alpha=alpha,
        ),
        thumbhash=base64.b64encode(thumbhash_encode(image)).decode("ascii"),
        aspect_ratio=orig_w / orig_h,
        avg_color=compute_avg_color(image),
    )
    result = ProcessResult(key=source.key, asset=asset)

    profile = config.profile
    widths = profile.effective_widths(orig_w)
    formats = registry.resolve_formats(profile.formats, alpha)

    output_dir = Path(config.output_dir)
    key_path = PurePosixPath(source.key)
    key_dir = key_path.parent
    if str(key_dir) != ".":
        with contextlib.suppress(OSError):
            (output_dir / key_dir).mkdir(parents=True, exist_ok=True)

    rgba = to_rgba(image)
    for width in widths:
        height = max(1, int(orig_h * width / orig_w))
        resized = rgba.resize((width, height), Image.Resampling.LANCZOS)

        for fmt in formats:
            encoder = registry.get(fmt)
            if encoder is None:
                continue
            try:
                data = encoder.encode(resized, profile.quality)
            except EncodeError as exc:
                if config.verbose:
                    _log(f"warn: encode {source.key}@{width}x{height} as {fmt}: {exc}")
                continue

            if config.no_regress_size and len(data) >= source.size:
                if config.verbose:
                    _log(
                        f"skip: {source.key}@{width}x{height} {fmt} — encoded "
                        f"{len(data)} >= original {source.size} bytes"
                    )
                result.skipped_regress += 1
                continue

            digest = content_hash(data, 16)
            file_name = f"{key_path.name}.{width}.{height}.{digest[:8]}.{encoder.extension}"
            rel_path = str(key_dir / file_name)
            try:
                (output_dir / rel_path).write_bytes(data)
            except OSError as exc:
                raise OSError(f"write {rel_path}: {exc}") from exc

            asset.variants.append(
                Variant(
                    format=fmt,
                    width=width,
                    height=height,
                    size=len(data),
                    hash=digest,
                    path=rel_path,
                )
            )

    return result