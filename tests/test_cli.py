import json

import pytest

from tgimg.cli import (
    detect_output_formats,
    format_bytes,
    main,
    render_build_report,
    render_stats,
    trunc_key,
    validate_manifest,
)
from tgimg.fixtures import generate
from tgimg.manifest import (
    MANIFEST_FILENAME,
    Asset,
    BuildInfo,
    Manifest,
    OriginalInfo,
    Variant,
    load_manifest,
    write_json,
)


def _variant(fmt, path, size=10, width=32):
    return Variant(format=fmt, width=width, height=16, size=size, hash="abcd1234", path=path)


def _asset(variants, thumbhash="AAAA"):
    return Asset(
        original=OriginalInfo(width=64, height=32, format="png", size=1000),
        thumbhash=thumbhash,
        aspect_ratio=2.0,
        variants=variants,
    )


def _valid_dir(tmp_path):
    (tmp_path / "a.png").write_bytes(b"x" * 10)
    (tmp_path / "a.webp").write_bytes(b"y" * 7)
    m = Manifest(profile="minimal", generated_at="2025-01-01T00:00:00Z")
    m.assets["a"] = _asset([_variant("png", "a.png", 10), _variant("webp", "a.webp", 7)])
    m.compute_stats()
    return m


def test_format_bytes_plain():
    assert format_bytes(512) == "512 B"


def test_format_bytes_units():
    assert format_bytes(1023).endswith(" B")
    assert format_bytes(1 << 10).endswith(" KB")
    assert format_bytes(1 << 20).endswith(" MB")
    assert format_bytes(1536) == "1.5 KB"


def test_trunc_key_short_unchanged():
    assert trunc_key("banner", 40) == "banner"


def test_trunc_key_long():
    key = "deep/nested/path/" * 5 + "image"
    out = trunc_key(key, 40)
    assert len(out) == 40
    assert out.startswith("...")
    assert key.endswith(out[3:])


def test_detect_output_formats_priority_order():
    m = Manifest()
    m.assets["x"] = _asset([_variant("png", "x.png"), _variant("webp", "x.webp")])
    m.assets["y"] = _asset([_variant("avif", "y.avif")])
    assert detect_output_formats(m) == ["avif", "webp", "png"]


def test_validate_clean_manifest(tmp_path):
    m = _valid_dir(tmp_path)
    assert validate_manifest(m, tmp_path) == []


def test_validate_reports_problems(tmp_path):
    m = _valid_dir(tmp_path)
    m.version = 2
    m.assets["a"].thumbhash = ""
    m.assets["a"].variants.append(_variant("png", "a.png", 10))
    m.assets["a"].variants.append(_variant("jpeg", "missing.jpeg", 5))
    m.assets["a"].variants[1].size = 99
    errors = validate_manifest(m, tmp_path)
    joined = "\n".join(errors)
    assert "unsupported manifest version: 2" in joined
    assert 'asset "a": missing thumbhash' in joined
    assert 'duplicate path "a.png"' in joined
    assert "file not found: missing.jpeg" in joined
    assert "size mismatch: manifest=99, disk=7" in joined
    assert "stats.total_variants mismatch" in joined


def test_validate_bad_dimensions_and_empty_variants(tmp_path):
    m = Manifest()
    m.assets["b"] = Asset(original=OriginalInfo(width=0, height=5), thumbhash="A")
    errors = validate_manifest(m, tmp_path)
    assert 'asset "b": invalid original dimensions 0x5' in errors
    assert 'asset "b": no variants' in errors
    assert any("invalid aspect ratio" in e for e in errors)
    assert any("stats.total_assets mismatch" in e for e in errors)


def test_render_stats_sections_and_warnings(tmp_path):
    m = _valid_dir(tmp_path)
    m.build_info = BuildInfo(workers=4, pool_entry_kb=167)
    m.assets["c"] = _asset([], thumbhash="")
    m.compute_stats()
    out = render_stats(m)
    assert "Manifest version: 1" in out
    assert "Workers:          4" in out
    assert "Format breakdown:" in out
    assert "ThumbHash coverage: 1 / 2 assets" in out
    assert 'asset "c" has no variants' in out
    assert 'asset "c" missing thumbhash' in out


def test_render_build_report(tmp_path):
    m = _valid_dir(tmp_path)
    m.build_info = BuildInfo(workers=2, pool_entry_kb=167)
    out = render_build_report(m, 1.5)
    assert "tgimg build complete" in out
    assert "Time:        1.5s" in out
    assert f"Variants:    {m.stats.total_variants}" in out
    assert "Formats:     webp, png" in out
    assert "Top 1 heaviest" in out


def test_render_build_report_millis():
    m = Manifest()
    out = render_build_report(m, 0.123)
    assert "Time:        123ms" in out


def test_main_stats_on_directory(tmp_path, capsys):
    m = _valid_dir(tmp_path)
    write_json(m, tmp_path / MANIFEST_FILENAME)
    assert main(["stats", str(tmp_path)]) == 0
    assert "Total variants:   2" in capsys.readouterr().out


def test_main_stats_missing_path(tmp_path, capsys):
    assert main(["stats", str(tmp_path / "nope")]) == 1
    assert "Error: stat" in capsys.readouterr().err


def test_main_validate_ok_and_failure(tmp_path, capsys):
    m = _valid_dir(tmp_path)
    path = tmp_path / MANIFEST_FILENAME
    write_json(m, path)
    assert main(["validate", str(path)]) == 0
    assert "Manifest is valid" in capsys.readouterr().out

    (tmp_path / "a.webp").unlink()
    assert main(["validate", str(path)]) == 1
    captured = capsys.readouterr()
    assert "error(s)" in captured.out
    assert "validation failed with 1 errors" in captured.err


def test_main_validate_bad_json(tmp_path, capsys):
    path = tmp_path / MANIFEST_FILENAME
    path.write_text("{not json", encoding="utf-8")
    assert main(["validate", str(path)]) == 1
    assert "parse manifest" in capsys.readouterr().err


def test_main_build_end_to_end(tmp_path, capsys):
    src = tmp_path / "in"
    out = tmp_path / "out"
    generate(src)
    assert main(["build", str(src), "-o", str(out), "--no-regress-size=false", "-w", "2"]) == 0
    assert "tgimg build complete" in capsys.readouterr().out

    manifest = load_manifest(out / MANIFEST_FILENAME)
    assert set(manifest.assets) == {"banner", "cards/card-1", "cards/card-2", "cards/card-3", "logo"}
    assert manifest.build_info.workers == 2
    assert all(a.variants for a in manifest.assets.values())
    assert main(["validate", str(out / MANIFEST_FILENAME)]) == 0


def test_main_build_missing_input(tmp_path, capsys):
    code = main(["build", str(tmp_path / "absent"), "-o", str(tmp_path / "out")])
    assert code == 1
    assert "Error: pipeline" in capsys.readouterr().err


def test_main_version(capsys):
    with pytest.raises(SystemExit) as info:
        main(["--version"])
    assert info.value.code == 0
    assert capsys.readouterr().out.startswith("tgimg 0.1.0")


def test_written_manifest_parses_as_json(tmp_path):
    m = _valid_dir(tmp_path)
    path = tmp_path / MANIFEST_FILENAME
    write_json(m, path)
    data = json.loads(path.read_text(encoding="utf-8"))
    assert validate_manifest(Manifest.from_dict(data), tmp_path) == []