"""Image encoders (JPEG, PNG, WebP, AVIF) and a registry that picks them."""

from __future__ import annotations

import io
import shutil
import subprocess
import tempfile
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import ClassVar

from PIL import Image

DEFAULT_QUALITY = 82
FORMAT_PRIORITY = ("avif", "webp", "jpeg", "png")

_PNG_MODES = frozenset({"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"})


class EncodeError(RuntimeError):
    """Raised when an image cannot be encoded."""


def _normalise_quality(quality: int) -> int:
    return quality if 0 < quality <= 100 else DEFAULT_QUALITY


def _png_ready(image: Image.Image) -> Image.Image:
    return image if image.mode in _PNG_MODES else image.convert("RGBA")


def _flatten_on_black(image: Image.Image) -> Image.Image:
    """Drop alpha the way a premultiplied encoder does: composite onto black."""
    if image.mode in ("RGB", "L"):
        return image
    if image.mode == "P" and "transparency" in image.info:
        image = image.convert("RGBA")
    if image.mode in ("RGBA", "LA", "PA", "RGBa", "La"):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (0, 0, 0))
        background.paste(rgba.convert("RGB"), mask=rgba.getchannel("A"))
        return background
    return image.convert("RGB")


class Encoder(ABC):
    """Encodes an image to one output format."""

    format: ClassVar[str] = ""
    extension: ClassVar[str] = ""

    def available(self) -> bool:
        """Return True when the encoder can be used."""
        return True

    @abstractmethod
    def encode(self, image: Image.Image, quality: int) -> bytes:
        """Encode *image* at the given quality (1-100) and return the bytes."""


class JPEGEncoder(Encoder):
    """Baseline JPEG through Pillow."""

    format = "jpeg"
    extension = "jpeg"

    def encode(self, image: Image.Image, quality: int = DEFAULT_QUALITY) -> bytes:
        buf = io.BytesIO()
        try:
            _flatten_on_black(image).save(
                buf, format="JPEG", quality=_normalise_quality(quality)
            )
        except (OSError, ValueError) as exc:
            raise EncodeError(f"jpeg: {exc}") from exc
        return buf.getvalue()


class PNGEncoder(Encoder):
    """Lossless PNG at maximum compression; quality is ignored."""

    format = "png"
    extension = "png"

    def encode(self, image: Image.Image, quality: int = 0) -> bytes:
        buf = io.BytesIO()
        try:
            _png_ready(image).save(buf, format="PNG", compress_level=9)
        except (OSError, ValueError) as exc:
            raise EncodeError(f"png: {exc}") from exc
        return buf.getvalue()


class _ExternalEncoder(Encoder):
    """Encoder that runs a command-line tool found on PATH."""

    tool: ClassVar[str] = ""
    install_hint: ClassVar[str] = ""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._probed = False
        self._path: str | None = None

    def available(self) -> bool:
        with self._lock:
            if not self._probed:
                self._path = shutil.which(self.tool)
                self._probed = True
        return self._path is not None

    def _command(self, tool_path: str, quality: int, src: Path, dst: Path) -> list[str]:
        raise NotImplementedError

    def encode(self, image: Image.Image, quality: int = DEFAULT_QUALITY) -> bytes:
        if not self.available():
            raise EncodeError(
                f"{self.tool} not found in PATH; install with: {self.install_hint}"
            )
        assert self._path is not None
        quality = _normalise_quality(quality)
        with tempfile.TemporaryDirectory(prefix=f"tgimg_{self.format}_") as tmp:
            src = Path(tmp) / "src.png"
            dst = Path(tmp) / f"dst.{self.extension}"
            try:
                _png_ready(image).save(src, format="PNG")
            except (OSError, ValueError) as exc:
                raise EncodeError(f"encode temp png: {exc}") from exc
            try:
                proc = subprocess.run(
                    self._command(self._path, quality, src, dst),
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    check=False,
                )
            except OSError as exc:
                raise EncodeError(f"{self.tool}: {exc}") from exc
            if proc.returncode != 0:
                output = proc.stdout.decode(errors="replace")
                raise EncodeError(
                    f"{self.tool}: exit status {proc.returncode}: {output}"
                )
            try:
                return dst.read_bytes()
            except OSError as exc:
                raise EncodeError(f"{self.tool}: {exc}") from exc


class WebPEncoder(_ExternalEncoder):
    """WebP through the cwebp tool."""

    format = "webp"
    extension = "webp"
    tool = "cwebp"
    install_hint = "brew install webp"

    def available(self) -> bool:
        return super().available()

    def encode(self, image: Image.Image, quality: int = DEFAULT_QUALITY) -> bytes:
        return super().encode(image, quality)

    def _command(self, tool_path: str, quality: int, src: Path, dst: Path) -> list[str]:
        return [
            tool_path, "-q", str(quality), "-m", "6", "-mt", "-quiet",
            str(src), "-o", str(dst),
        ]


class AVIFEncoder(_ExternalEncoder):
    """AVIF through the avifenc tool."""

    format = "avif"
    extension = "avif"
    tool = "avifenc"
    install_hint = "brew install libavif"
    speed = 6

    def available(self) -> bool:
        return super().available()

    def encode(self, image: Image.Image, quality: int = DEFAULT_QUALITY) -> bytes:
        return super().encode(image, quality)

    def _command(self, tool_path: str, quality: int, src: Path, dst: Path) -> list[str]:
        # avifenc quantizer: 0 (best) .. 63 (worst)
        avif_q = str(63 - quality * 63 // 100)
        return [
            tool_path, "--min", avif_q, "--max", avif_q,
            "--speed", str(self.speed), "-j", "all", str(src), str(dst),
        ]


class EncoderRegistry:
    """The available encoders, keyed by format name."""

    def __init__(self, encoders: Iterable[Encoder] | None = None) -> None:
        if encoders is None:
            encoders = (AVIFEncoder(), WebPEncoder(), JPEGEncoder(), PNGEncoder())
        self._encoders: dict[str, Encoder] = {
            enc.format: enc for enc in encoders if enc.available()
        }

    def get(self, format: str) -> Encoder | None:
        """Return the encoder for *format* (case-insensitive), or None."""
        return self._encoders.get(format.lower())

    def available(self) -> list[str]:
        """Available format names in priority order."""
        return [f for f in FORMAT_PRIORITY if f in self._encoders]

    def resolve_formats(self, requested: Iterable[str], has_alpha: bool) -> list[str]:
        """Filter *requested* to available formats and add fallbacks."""
        resolved: list[str] = []
        seen: set[str] = set()
        for fmt in requested:
            fmt = fmt.lower()
            if fmt in self._encoders and fmt not in seen:
                resolved.append(fmt)
                seen.add(fmt)

        if not resolved:
            fallback = "png" if has_alpha else "jpeg"
            if fallback in self._encoders:
                resolved.append(fallback)

        if has_alpha and "png" not in seen and "png" in self._encoders:
            resolved.append("png")
        return resolved

    def __str__(self) -> str:
        names = self.available()
        if not names:
            return "no encoders available"
        return f"encoders: {', '.join(names)}"