"""Discovery of source images in an input directory tree."""

from __future__ import annotations

import os
import stat
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import PurePath

IMAGE_EXTENSIONS = frozenset(
    {".png", ".jpg", ".jpeg", ".webp", ".gif", ".bmp", ".tiff", ".tif"}
)

_FORMAT_ALIASES = {"jpg": "jpeg", "tif": "tiff"}


@dataclass(frozen=True)
class Source:
    """A discovered image file."""

    abs_path: str
    rel_path: str
    key: str
    format: str
    size: int


def _extension(name: str) -> str:
    dot = name.rfind(".")
    return name[dot:] if dot >= 0 else ""


def _to_slash(path: str) -> str:
    return PurePath(path).as_posix()


def _walk(root: str, path: str) -> Iterator[Source]:
    info = os.lstat(path)
    name = os.path.basename(os.path.normpath(path))

    if stat.S_ISDIR(info.st_mode):
        if name.startswith(".") and name != ".":
            return
        for entry in sorted(os.listdir(path)):
            yield from _walk(root, os.path.join(path, entry))
        return

    ext = _extension(name).lower()
    if ext not in IMAGE_EXTENSIONS:
        return

    rel_path = os.path.relpath(path, root)
    # The suffix is removed only when its case matches the lowered extension.
    key = rel_path[: -len(ext)] if rel_path.endswith(ext) else rel_path
    fmt = ext[1:]
    yield Source(
        abs_path=path,
        rel_path=_to_slash(rel_path),
        key=_to_slash(key),
        format=_FORMAT_ALIASES.get(fmt, fmt),
        size=info.st_size,
    )


def scan_images(input_dir: str | os.PathLike[str]) -> list[Source]:
    """Walk *input_dir* in lexical order and return every image found.

    Hidden directories are skipped. Raises OSError when the tree cannot be read.
    """
    root = os.fspath(input_dir)
    return list(_walk(root, root))