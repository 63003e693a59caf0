"""Small deterministic sample images for smoke-testing a build."""

from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
from PIL import Image


def _ramp(n: int) -> np.ndarray:
    return (np.arange(n, dtype=np.int64) * 255 // max(n, 1)).astype(np.uint8)


def gradient(w: int, h: int) -> Image.Image:
    """Opaque image: red rises left to right, green top to bottom, blue 128."""
    arr = np.empty((h, w, 4), dtype=np.uint8)
    arr[..., 0] = _ramp(w)[None, :]
    arr[..., 1] = _ramp(h)[:, None]
    arr[..., 2] = 128
    arr[..., 3] = 255
    return Image.fromarray(arr)


def solid_with_border(w: int, h: int, base: int) -> Image.Image:
    """Solid colour derived from *base* inside a 4-pixel white border."""
    fill = [(base + offset) % 256 for offset in (0, 40, 80)] + [255]
    arr = np.empty((h, w, 4), dtype=np.uint8)
    arr[...] = fill
    arr[:4, :] = 255
    arr[h - 4 :, :] = 255
    arr[:, :4] = 255
    arr[:, w - 4 :] = 255
    return Image.fromarray(arr)


def alpha_gradient(w: int, h: int) -> Image.Image:
    """Orange image whose alpha rises left to right."""
    arr = np.empty((h, w, 4), dtype=np.uint8)
    arr[..., :3] = (220, 60, 30)
    arr[..., 3] = _ramp(w)[None, :]
    return Image.fromarray(arr)


def generate(out_dir: str | Path) -> list[Path]:
    """Write the five sample images under *out_dir* and return their paths."""
    root = Path(out_dir)
    (root / "cards").mkdir(parents=True, exist_ok=True)

    written: list[Path] = []
    banner = root / "banner.jpg"
    gradient(400, 225).convert("RGB").save(banner, format="JPEG", quality=85)
    written.append(banner)

    for i in range(1, 4):
        card = root / "cards" / f"card-{i}.png"
        solid_with_border(200, 150, (i * 60) % 256).save(card, format="PNG")
        written.append(card)

    logo = root / "logo.png"
    alpha_gradient(100, 100).save(logo, format="PNG")
    written.append(logo)

    print(f"[gen_fixtures] created {len(written)} fixtures in {root}", file=sys.stderr)
    return written


def main(argv: list[str] | None = None) -> int:
    """Command entry point: gen_fixtures <output_dir>."""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print("usage: gen_fixtures <output_dir>", file=sys.stderr)
        return 1
    generate(args[0])
    return 0


if __name__ == "__main__":
    sys.exit(main())