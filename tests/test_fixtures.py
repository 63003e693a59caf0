from pathlib import Path

import pytest
from PIL import Image

from tgimg.fixtures import alpha_gradient, generate, gradient, main, solid_with_border


def test_gradient_shape_and_origin() -> None:
    img = gradient(400, 225)
    assert img.size == (400, 225)
    assert img.mode == "RGBA"
    assert img.getpixel((0, 0)) == (0, 0, 128, 255)


def test_gradient_monotonic() -> None:
    img = gradient(50, 30)
    reds = [img.getpixel((x, 5))[0] for x in range(50)]
    greens = [img.getpixel((5, y))[1] for y in range(30)]
    assert reds == sorted(reds)
    assert greens == sorted(greens)
    assert reds[-1] < 255


def test_solid_with_border() -> None:
    img = solid_with_border(200, 150, 60)
    assert img.getpixel((0, 0)) == (255, 255, 255, 255)
    assert img.getpixel((3, 75)) == (255, 255, 255, 255)
    assert img.getpixel((199, 149)) == (255, 255, 255, 255)
    assert img.getpixel((4, 4)) == (60, 100, 140, 255)
    assert img.getpixel((100, 75)) == (60, 100, 140, 255)


def test_solid_with_border_wraps_channels() -> None:
    img = solid_with_border(20, 20, 240)
    assert img.getpixel((10, 10))[:3] == (240, 24, 64)


def test_alpha_gradient() -> None:
    img = alpha_gradient(100, 100)
    alphas = [img.getpixel((x, 50))[3] for x in range(100)]
    assert alphas[0] == 0
    assert alphas == sorted(alphas)
    assert img.getpixel((70, 20))[:3] == (220, 60, 30)


def test_generate_writes_five_files(tmp_path: Path) -> None:
    paths = generate(tmp_path)
    assert sorted(p.relative_to(tmp_path).as_posix() for p in paths) == [
        "banner.jpg",
        "cards/card-1.png",
        "cards/card-2.png",
        "cards/card-3.png",
        "logo.png",
    ]
    with Image.open(tmp_path / "banner.jpg") as banner:
        assert banner.format == "JPEG"
        assert banner.size == (400, 225)
    with Image.open(tmp_path / "cards" / "card-2.png") as card:
        assert card.size == (200, 150)
        assert card.convert("RGBA").getpixel((100, 75)) == (120, 160, 200, 255)
    with Image.open(tmp_path / "logo.png") as logo:
        assert logo.size == (100, 100)
        assert logo.convert("RGBA").getpixel((0, 0))[3] == 0


def test_main_without_args(capsys: pytest.CaptureFixture[str]) -> None:
    assert main([]) == 1
    assert "usage: gen_fixtures <output_dir>" in capsys.readouterr().err


def test_main_with_dir(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main([str(tmp_path / "fx")]) == 0
    assert (tmp_path / "fx" / "logo.png").is_file()
    assert "created 5 fixtures" in capsys.readouterr().err