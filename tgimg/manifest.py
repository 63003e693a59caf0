"""Build manifest model and its JSON serialisation."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

SUPPORTED_MANIFEST_VERSION = 1
MANIFEST_FILENAME = "tgimg.manifest.json"

_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


@dataclass
class BuildInfo:
    """Build-time parameters kept for diagnostics."""

    workers: int = 0
    pool_entry_kb: int = 0


@dataclass
class OriginalInfo:
    """Metadata about a source image."""

    width: int = 0
    height: int = 0
    format: str = ""
    size: int = 0
    has_alpha: bool = False


@dataclass
class Variant:
    """One encoded output of an asset at a given size and format."""

    format: str = ""
    width: int = 0
    height: int = 0
    size: int = 0
    hash: str = ""
    path: str = ""


@dataclass
class Asset:
    """A source image and all its generated variants."""

    original: OriginalInfo = field(default_factory=OriginalInfo)
    thumbhash: str = ""
    aspect_ratio: float = 0.0
    avg_color: tuple[int, int, int] | None = None
    variants: list[Variant] = field(default_factory=list)


@dataclass
class Stats:
    """Aggregate build metrics."""

    total_input_bytes: int = 0
    total_output_bytes: int = 0
    total_assets: int = 0
    total_variants: int = 0
    skipped_regress: int = 0


@dataclass
class Manifest:
    """Top-level output of a build."""

    version: int = SUPPORTED_MANIFEST_VERSION
    generated_at: str = ""
    profile: str = ""
    base_path: str = "./"
    build_info: BuildInfo | None = None
    assets: dict[str, Asset] = field(default_factory=dict)
    stats: Stats = field(default_factory=Stats)

    def compute_stats(self) -> None:
        """Recalculate aggregate statistics from the assets (resets skipped_regress)."""
        self.stats = Stats(
            total_assets=len(self.assets),
            total_input_bytes=sum(a.original.size for a in self.assets.values()),
            total_variants=sum(len(a.variants) for a in self.assets.values()),
            total_output_bytes=sum(
                v.size for a in self.assets.values() for v in a.variants
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready mapping, with assets in key order."""
        out: dict[str, Any] = {
            "version": self.version,
            "generated_at": self.generated_at,
            "profile": self.profile,
            "base_path": self.base_path,
        }
        if self.build_info is not None:
            out["build_info"] = {
                "workers": self.build_info.workers,
                "pool_entry_kb": self.build_info.pool_entry_kb,
            }
        out["assets"] = {
            key: _asset_to_dict(self.assets[key]) for key in sorted(self.assets)
        }
        out["stats"] = _stats_to_dict(self.stats)
        return out

    def to_json(self, indent: int | None = 2) -> str:
        """Serialise to JSON; indent=None gives the compact form."""
        separators = (",", ": ") if indent is not None else (",", ":")
        text = json.dumps(
            self.to_dict(), indent=indent, separators=separators, ensure_ascii=False
        )
        for char, escaped in _ESCAPES.items():
            text = text.replace(char, escaped)
        return text

    @classmethod
    def from_dict(cls, data: Any) -> Manifest:
        """Build a manifest from parsed JSON, ignoring unknown fields."""
        data = _obj(data, "manifest") or {}
        build_info_raw = _obj(data.get("build_info"), "build_info")
        assets_raw = _obj(data.get("assets"), "assets") or {}
        return cls(
            version=_int(data, "version"),
            generated_at=_str(data, "generated_at"),
            profile=_str(data, "profile"),
            base_path=_str(data, "base_path"),
            build_info=(
                BuildInfo(
                    workers=_int(build_info_raw, "workers"),
                    pool_entry_kb=_int(build_info_raw, "pool_entry_kb"),
                )
                if build_info_raw is not None
                else None
            ),
            assets={key: _asset_from_dict(value, key) for key, value in assets_raw.items()},
            stats=_stats_from_dict(_obj(data.get("stats"), "stats") or {}),
        )


def new_manifest(profile_name: str) -> Manifest:
    """Create an empty manifest stamped with the current UTC time."""
    return Manifest(
        version=SUPPORTED_MANIFEST_VERSION,
        generated_at=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        profile=profile_name,
        base_path="./",
    )


def write_json(manifest: Manifest, path: str | Path) -> None:
    """Recompute stats and write the manifest as indented JSON."""
    manifest.compute_stats()
    Path(path).write_text(manifest.to_json(2) + "\n", encoding="utf-8")


def load_manifest(path: str | Path) -> Manifest:
    """Read and parse a manifest file."""
    text = Path(path).read_text(encoding="utf-8")
    return Manifest.from_dict(json.loads(text))


def _asset_to_dict(asset: Asset) -> dict[str, Any]:
    out: dict[str, Any] = {
        "original": {
            "width": asset.original.width,
            "height": asset.original.height,
            "format": asset.original.format,
            "size": asset.original.size,
            "has_alpha": asset.original.has_alpha,
        },
        "thumbhash": asset.thumbhash,
        "aspect_ratio": asset.aspect_ratio,
    }
    if asset.avg_color is not None:
        out["avg_color"] = list(asset.avg_color)
    out["variants"] = [
        {
            "format": v.format,
            "width": v.width,
            "height": v.height,
            "size": v.size,
            "hash": v.hash,
            "path": v.path,
        }
        for v in asset.variants
    ]
    return out


def _stats_to_dict(stats: Stats) -> dict[str, Any]:
    out: dict[str, Any] = {
        "total_input_bytes": stats.total_input_bytes,
        "total_output_bytes": stats.total_output_bytes,
        "total_assets": stats.total_assets,
        "total_variants": stats.total_variants,
    }
    if stats.skipped_regress:
        out["skipped_regress"] = stats.skipped_regress
    return out


def _asset_from_dict(raw: Any, key: str) -> Asset:
    data = _obj(raw, f"assets[{key!r}]") or {}
    original = _obj(data.get("original"), "original") or {}
    variants_raw = data.get("variants")
    if variants_raw is None:
        variants_raw = []
    elif not isinstance(variants_raw, list):
        raise ValueError(f"field 'variants': expected array, got {variants_raw!r}")
    return Asset(
        original=OriginalInfo(
            width=_int(original, "width"),
            height=_int(original, "height"),
            format=_str(original, "format"),
            size=_int(original, "size"),
            has_alpha=_bool(original, "has_alpha"),
        ),
        thumbhash=_str(data, "thumbhash"),
        aspect_ratio=_float(data, "aspect_ratio"),
        avg_color=_color(data.get("avg_color")),
        variants=[_variant_from_dict(v) for v in variants_raw],
    )


def _variant_from_dict(raw: Any) -> Variant:
    data = _obj(raw, "variant") or {}
    return Variant(
        format=_str(data, "format"),
        width=_int(data, "width"),
        height=_int(data, "height"),
        size=_int(data, "size"),
        hash=_str(data, "hash"),
        path=_str(data, "path"),
    )


def _stats_from_dict(data: dict[str, Any]) -> Stats:
    return Stats(
        total_input_bytes=_int(data, "total_input_bytes"),
        total_output_bytes=_int(data, "total_output_bytes"),
        total_assets=_int(data, "total_assets"),
        total_variants=_int(data, "total_variants"),
        skipped_regress=_int(data, "skipped_regress"),
    )


def _obj(value: Any, name: str) -> dict[str, Any] | None:
    if value is None or isinstance(value, dict):
        return value
    raise ValueError(f"field {name!r}: expected object, got {value!r}")


def _int(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {key!r}: expected integer, got {value!r}")
    return value


def _float(data: dict[str, Any], key: str) -> float:
    value = data.get(key)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"field {key!r}: expected number, got {value!r}")
    return float(value)


def _str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r}: expected string, got {value!r}")
    return value


def _bool(data: dict[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValueError(f"field {key!r}: expected boolean, got {value!r}")
    return value


def _color(value: Any) -> tuple[int, int, int] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValueError(f"field 'avg_color': expected array, got {value!r}")
    channels = list(value[:3]) + [0] * (3 - min(len(value), 3))
    for channel in channels:
        if isinstance(channel, bool) or not isinstance(channel, int) or not 0 <= channel <= 255:
            raise ValueError(f"field 'avg_color': invalid channel {channel!r}")
    return (channels[0], channels[1], channels[2])