"""Command-line interface: build, stats and validate."""

from __future__ import annotations

import argparse
import json
import math
import os
import platform
import sys
import time
from collections import Counter
from collections.abc import Sequence
from datetime import timedelta
from pathlib import Path

from tgimg.manifest import MANIFEST_FILENAME, Manifest, write_json
from tgimg.pipeline import Pipeline, PipelineConfig, PipelineError
from tgimg.profile import DEFAULT_PROFILE, get_profile

VERSION = "0.1.0"

_FORMAT_ORDER = ("avif", "webp", "jpeg", "png")
_POOL_ENTRY_KB_ESTIMATE = 167
_TRUE_WORDS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_WORDS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


class _CommandError(Exception):
    """A command failed; the message is shown to the user."""


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def format_bytes(b: int) -> str:
    """Human-readable byte count in B, KB or MB."""
    if b >= 1 << 20:
        return f"{b / (1 << 20):.1f} MB"
    if b >= 1 << 10:
        return f"{b / (1 << 10):.1f} KB"
    return f"{b} B"


def trunc_key(s: str, max_len: int) -> str:
    """Shorten *s* to *max_len* characters by keeping its tail behind '...'."""
    if len(s) <= max_len:
        return s
    return "..." + s[len(s) - max_len + 3 :]


def detect_output_formats(manifest: Manifest) -> list[str]:
    """Formats used by any variant, in priority order."""
    used = {v.format for a in manifest.assets.values() for v in a.variants}
    return [f for f in _FORMAT_ORDER if f in used]


def _format_duration(elapsed: float | timedelta) -> str:
    seconds = elapsed.total_seconds() if isinstance(elapsed, timedelta) else float(elapsed)
    ms = int(math.copysign(math.floor(abs(seconds) * 1000 + 0.5), seconds))
    sign = "-" if ms < 0 else ""
    ms = abs(ms)
    if ms == 0:
        return "0s"
    if ms < 1000:
        return f"{sign}{ms}ms"
    hours, rem = divmod(ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    secs, frac = divmod(rem, 1000)
    sec_text = str(secs)
    if frac:
        sec_text += "." + f"{frac:03d}".rstrip("0")
    if hours:
        return f"{sign}{hours}h{minutes}m{sec_text}s"
    if minutes:
        return f"{sign}{minutes}m{sec_text}s"
    return f"{sign}{sec_text}s"


def render_build_report(manifest: Manifest, elapsed: float | timedelta) -> str:
    """Text summary printed after a build; *elapsed* is in seconds."""
    lines = [
        "",
        "╔══════════════════════════════════════════════════╗",
        "║              tgimg build complete                ║",
        "╚══════════════════════════════════════════════════╝",
        "",
    ]
    stats = manifest.stats
    ratio = 0.0
    if stats.total_input_bytes > 0:
        ratio = stats.total_output_bytes / stats.total_input_bytes * 100

    lines.append(f"  Assets:      {stats.total_assets}")
    lines.append(f"  Variants:    {stats.total_variants}")
    lines.append(f"  Input size:  {format_bytes(stats.total_input_bytes)}")
    lines.append(f"  Output size: {format_bytes(stats.total_output_bytes)}")
    lines.append(f"  Ratio:       {ratio:.1f}% of original")
    if stats.skipped_regress > 0:
        lines.append(
            f"  Skipped:     {stats.skipped_regress} variants (larger than original)"
        )
    lines.append(f"  Time:        {_format_duration(elapsed)}")

    info = manifest.build_info
    if info is not None:
        pool_mb = info.workers * info.pool_entry_kb / 1024
        lines.append(f"  Workers:     {info.workers}  (pool ≈ {pool_mb:.1f} MB)")
    lines.append("")

    if manifest.assets:
        items = sorted(
            (
                (key, a.original.size, sum(v.size for v in a.variants))
                for key, a in manifest.assets.items()
            ),
            key=lambda item: (-item[1], item[0]),
        )[:10]
        lines.append(f"  Top {len(items)} heaviest (original → optimized):")
        for key, in_size, out_size in items:
            saved = (1 - out_size / in_size) * 100 if in_size > 0 else 0.0
            lines.append(
                f"    {trunc_key(key, 40):<40} {format_bytes(in_size):>8} → "
                f"{format_bytes(out_size):>8}  (−{saved:.0f}%)"
            )
        lines.append("")

    lines.append(f"  Formats:     {', '.join(detect_output_formats(manifest))}")
    lines.append("")

    size = len(manifest.to_json(indent=None).encode("utf-8"))
    lines.append(f"  Manifest:    {MANIFEST_FILENAME} ({format_bytes(size)})")
    lines.append("")
    return "\n".join(lines) + "\n"


def render_stats(manifest: Manifest) -> str:
    """Text statistics for a built manifest."""
    lines = [
        "",
        f"  Manifest version: {manifest.version}",
        f"  Generated:        {manifest.generated_at}",
        f"  Profile:          {manifest.profile}",
    ]
    info = manifest.build_info
    if info is not None:
        pool_mb = info.workers * info.pool_entry_kb / 1024
        lines.append(f"  Workers:          {info.workers}")
        lines.append(
            f"  Pool footprint:   {info.workers} × {info.pool_entry_kb} KB ≈ {pool_mb:.1f} MB"
        )
    else:
        workers = os.cpu_count() or 1
        pool_mb = workers * _POOL_ENTRY_KB_ESTIMATE / 1024
        lines.append(f"  Workers (est):    {workers}  (pool ≈ {pool_mb:.1f} MB)")
    lines.append("")

    s = manifest.stats
    lines.append(f"  Total assets:     {s.total_assets}")
    lines.append(f"  Total variants:   {s.total_variants}")
    lines.append(f"  Input size:       {format_bytes(s.total_input_bytes)}")
    lines.append(f"  Output size:      {format_bytes(s.total_output_bytes)}")
    if s.total_input_bytes > 0:
        ratio = s.total_output_bytes / s.total_input_bytes * 100
        lines.append(f"  Compression:      {ratio:.1f}% of original")
    lines.append("")

    variants = [v for a in manifest.assets.values() for v in a.variants]
    counts = Counter(v.format for v in variants)
    sizes: Counter[str] = Counter()
    for v in variants:
        sizes[v.format] += v.size
    lines.append("  Format breakdown:")
    for fmt in _FORMAT_ORDER:
        if fmt in counts:
            lines.append(f"    {fmt:<6}  {counts[fmt]:4d} files  {format_bytes(sizes[fmt])}")
    lines.append("")

    widths = Counter(v.width for v in variants)
    lines.append("  Width breakdown:")
    for width in sorted(widths):
        lines.append(f"    {width:5d}px  {widths[width]:4d} variants")
    lines.append("")

    covered = sum(1 for a in manifest.assets.values() if a.thumbhash)
    lines.append(f"  ThumbHash coverage: {covered} / {len(manifest.assets)} assets")

    warnings: list[str] = []
    for key in sorted(manifest.assets):
        asset = manifest.assets[key]
        if not asset.variants:
            warnings.append(f"asset {_quote(key)} has no variants")
        if not asset.thumbhash:
            warnings.append(f"asset {_quote(key)} missing thumbhash")
    if warnings:
        lines.append("")
        lines.append(f"  Warnings ({len(warnings)}):")
        lines.extend(f"    ⚠ {w}" for w in warnings)
    lines.append("")
    return "\n".join(lines) + "\n"


def validate_manifest(manifest: Manifest, base_dir: str | os.PathLike[str]) -> list[str]:
    """Return every problem found in *manifest*; files are looked up under *base_dir*."""
    errors: list[str] = []
    if manifest.version != 1:
        errors.append(f"unsupported manifest version: {manifest.version}")

    for key in sorted(manifest.assets):
        asset = manifest.assets[key]
        name = _quote(key)
        orig = asset.original
        if orig.width <= 0 or orig.height <= 0:
            errors.append(
                f"asset {name}: invalid original dimensions {orig.width}x{orig.height}"
            )
        if not asset.thumbhash:
            errors.append(f"asset {name}: missing thumbhash")
        if asset.aspect_ratio <= 0:
            errors.append(f"asset {name}: invalid aspect ratio {asset.aspect_ratio:.4f}")
        if not asset.variants:
            errors.append(f"asset {name}: no variants")

        seen: set[str] = set()
        for i, v in enumerate(asset.variants):
            prefix = f"asset {name} variant[{i}]"
            if not v.format:
                errors.append(f"{prefix}: empty format")
            if v.width <= 0 or v.height <= 0:
                errors.append(f"{prefix}: invalid dimensions {v.width}x{v.height}")
            if not v.hash:
                errors.append(f"{prefix}: missing hash")
            if not v.path:
                errors.append(f"{prefix}: missing path")
                continue
            if v.path in seen:
                errors.append(f"{prefix}: duplicate path {_quote(v.path)}")
            seen.add(v.path)

            try:
                disk_size = os.stat(os.path.join(base_dir, v.path)).st_size
            except OSError:
                errors.append(f"{prefix}: file not found: {v.path}")
                continue
            if v.size > 0 and disk_size != v.size:
                errors.append(
                    f"{prefix}: size mismatch: manifest={v.size}, disk={disk_size}"
                )

    asset_count = len(manifest.assets)
    variant_count = sum(len(a.variants) for a in manifest.assets.values())
    if manifest.stats.total_assets != asset_count:
        errors.append(
            f"stats.total_assets mismatch: {manifest.stats.total_assets} != {asset_count}"
        )
    if manifest.stats.total_variants != variant_count:
        errors.append(
            f"stats.total_variants mismatch: {manifest.stats.total_variants} != {variant_count}"
        )
    return errors


def _read_manifest(path: str) -> Manifest:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise _CommandError(f"read manifest: {exc}") from exc
    try:
        return Manifest.from_dict(json.loads(text))
    except ValueError as exc:
        raise _CommandError(f"parse manifest: {exc}") from exc


def _parse_bool(text: str) -> bool:
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value {text!r}")


def _int_list(text: str) -> list[int]:
    try:
        return [int(part) for part in text.split(",") if part.strip()]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer list {text!r}") from exc


def _log_verbose(args: argparse.Namespace, message: str) -> None:
    if args.verbose:
        print(f"[tgimg] {message}", file=sys.stderr)


def _run_build(args: argparse.Namespace) -> None:
    start = time.monotonic()
    abs_input = os.path.abspath(args.input_dir)
    abs_output = os.path.abspath(args.out)

    prof = get_profile(args.profile)
    if args.widths is not None:
        prof.widths = [w for group in args.widths for w in group]
    if args.quality > 0:
        prof.quality = args.quality

    _log_verbose(args, f"input:   {abs_input}")
    _log_verbose(args, f"output:  {abs_output}")
    _log_verbose(
        args, f"profile: {prof.name} (widths={prof.widths}, quality={prof.quality})"
    )

    try:
        Path(abs_output).mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise _CommandError(f"create output dir: {exc}") from exc

    pipeline = Pipeline(
        PipelineConfig(
            input_dir=abs_input,
            output_dir=abs_output,
            profile=prof,
            workers=args.workers,
            verbose=args.verbose,
            no_regress_size=args.no_regress_size,
        )
    )
    try:
        manifest = pipeline.run()
    except PipelineError as exc:
        raise _CommandError(f"pipeline: {exc}") from exc

    try:
        write_json(manifest, os.path.join(abs_output, MANIFEST_FILENAME))
    except OSError as exc:
        raise _CommandError(f"write manifest: {exc}") from exc

    print(render_build_report(manifest, time.monotonic() - start), end="")


def _run_stats(args: argparse.Namespace) -> None:
    path = args.path
    try:
        is_dir = os.path.isdir(path) if os.stat(path) else False
    except OSError as exc:
        raise _CommandError(f"stat {path}: {exc}") from exc
    if is_dir:
        path = os.path.join(path, MANIFEST_FILENAME)
    print(render_stats(_read_manifest(path)), end="")


def _run_validate(args: argparse.Namespace) -> None:
    path = args.manifest_path
    manifest = _read_manifest(path)
    errors = validate_manifest(manifest, os.path.dirname(path) or ".")
    if not errors:
        print("  ✓ Manifest is valid")
        print(
            f"  ✓ {manifest.stats.total_assets} assets, "
            f"{manifest.stats.total_variants} variants — all files present"
        )
        return
    print(f"  ✗ Manifest has {len(errors)} error(s):")
    for error in errors:
        print(f"    • {error}")
    raise _CommandError(f"validation failed with {len(errors)} errors")


def _version_text() -> str:
    system = platform.system().lower() or "unknown"
    machine = platform.machine().lower() or "unknown"
    return f"tgimg {VERSION} ({system}/{machine}, Python {platform.python_version()})"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tgimg",
        description=(
            "tgimg — turns megabyte banners/buttons into fast, cache-friendly assets "
            "with instant thumbhash placeholders and zero layout shift."
        ),
    )
    parser.add_argument("--version", action="version", version=_version_text())
    parser.add_argument("-v", "--verbose", action="store_true", help="verbose output")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-v", "--verbose", action="store_true", default=argparse.SUPPRESS,
        help="verbose output",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser(
        "build", parents=[common],
        help="Process images and generate optimized variants + manifest",
    )
    build.add_argument("input_dir")
    build.add_argument("-o", "--out", default="./tgimg_out", help="output directory")
    build.add_argument("-p", "--profile", default=DEFAULT_PROFILE, help="processing profile")
    build.add_argument(
        "-w", "--workers", type=int, default=0, help="parallel workers (0 = NumCPU)"
    )
    build.add_argument(
        "--widths", type=_int_list, action="append", default=None,
        help="custom widths (overrides profile)",
    )
    build.add_argument(
        "-q", "--quality", type=int, default=0,
        help="quality 1-100 (0 = profile default)",
    )
    build.add_argument(
        "--no-regress-size", type=_parse_bool, nargs="?", const=True, default=True,
        metavar="BOOL", help="skip variants larger than original file",
    )
    build.set_defaults(handler=_run_build)

    stats = sub.add_parser(
        "stats", parents=[common], help="Display statistics for a built asset directory"
    )
    stats.add_argument("path", metavar="out_dir_or_manifest")
    stats.set_defaults(handler=_run_stats)

    validate = sub.add_parser(
        "validate", parents=[common],
        help="Validate a tgimg manifest and check referenced files exist",
    )
    validate.add_argument("manifest_path")
    validate.set_defaults(handler=_run_validate)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; returns the process exit status."""
    args = _build_parser().parse_args(argv)
    try:
        args.handler(args)
    except _CommandError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())