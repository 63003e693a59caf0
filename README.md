# tgimg

tgimg turns large banners and buttons into small, cache-friendly assets for
Telegram Mini Apps. For each image it records a ThumbHash placeholder and the
aspect ratio. A client can use these to show something at once and to keep
the layout from shifting while the full image loads.

For each source image in an input directory, tgimg does the following:

- It decodes the image with Pillow. PNG, JPEG, WebP, GIF, BMP and TIFF files
  are picked up. Hidden directories are skipped.
- It picks target widths from a profile. When the profile asks for retina
  variants, it adds 2x widths too. It never upscales. If no profile width
  fits, it uses the original width.
- It encodes each width in the formats the profile lists:
  - JPEG and PNG go through Pillow.
  - WebP and AVIF go through the external `cwebp` and `avifenc` tools, and
    only when those tools are on `PATH`.
  - Images with transparency also always get a PNG variant.
- It names output files by their content:
  `<name>.<width>.<height>.<hash8>.<ext>`. Here `hash8` is the first 8 hex
  characters of the XXH64 hash of the encoded bytes. The files keep the
  sub-directory layout of the input.
- It computes a ThumbHash placeholder (stored as base64) and an average
  colour.
- It writes `tgimg.manifest.json`, which describes every asset and variant.

## Installation

```
pip install .
```

The WebP and AVIF encoders are optional:

- WebP needs the `cwebp` tool (package `webp`).
- AVIF needs the `avifenc` tool (package `libavif` / `libavif-bin`).

Without them, tgimg still produces JPEG and PNG.

## Profiles

| Profile | Widths | Formats | Quality | Retina |
| --- | --- | --- | --- | --- |
| `telegram-webview` (default) | 320, 640, 960, 1280 | webp, jpeg | 82 | yes |
| `telegram-webview-hq` | 320, 640, 960, 1280, 1920 | avif, webp, jpeg | 85 | yes |
| `minimal` | 320, 640 | webp, jpeg | 78 | no |

If you give a profile name that tgimg does not know, it uses the
`telegram-webview` settings and keeps the name you gave.

## Usage

### Build

```
tgimg build ./images -o ./tgimg_out -p telegram-webview
```

| Option | Meaning |
| --- | --- |
| `-o`, `--out` | output directory (default `./tgimg_out`) |
| `-p`, `--profile` | processing profile (default `telegram-webview`) |
| `-w`, `--workers` | parallel workers (0 = number of CPUs) |
| `--widths` | comma-separated widths that replace the profile's widths; you can repeat it |
| `-q`, `--quality` | quality 1–100 (0 = profile default) |
| `--no-regress-size [BOOL]` | skip variants whose encoded size is at least the original file size; on by default, turn it off with `--no-regress-size false` |
| `-v`, `--verbose` | progress messages on stderr |

When the build finishes, tgimg prints a report with these items:

- asset and variant counts
- input and output sizes
- the heaviest assets
- the formats produced

If one image fails, the build reports the error and carries on. The build
fails only when every image fails, or when no images are found.

### Stats

Pass either the output directory or the manifest file:

```
tgimg stats ./tgimg_out
```

This prints the following:

- the totals
- a breakdown by format and by width
- ThumbHash coverage
- warnings for assets that have no variants or no placeholder

### Validate

```
tgimg validate ./tgimg_out/tgimg.manifest.json
```

This checks the following:

- the manifest version
- asset and variant fields
- duplicate paths
- the recorded totals
- that every variant file exists next to the manifest with the recorded size

If the manifest has problems, tgimg lists them and exits with status 1.

### Sample images

Generate a few sample images to try the pipeline on:

```
tgimg-fixtures ./fixtures
tgimg build ./fixtures -o ./out
```

The samples are:

- a JPEG banner
- three bordered PNG cards in `cards/`
- a PNG logo with transparency

## Library use

```python
from PIL import Image
from tgimg import thumbhash
from tgimg.profile import get_profile
from tgimg.manifest import load_manifest

with Image.open("banner.jpg") as img:
    placeholder = thumbhash.encode(img)   # bytes, deterministic

widths = get_profile("minimal").effective_widths(1200)   # [320, 640]
manifest = load_manifest("tgimg_out/tgimg.manifest.json")
print(manifest.stats.total_variants)
```

The package has these modules:

- `tgimg.pipeline`: `Pipeline` and `PipelineConfig` run a whole build and
  return a `Manifest`. They raise `PipelineError` on failure.
- `tgimg.encoders`: `EncoderRegistry` and the JPEG, PNG, WebP and AVIF
  encoders.
- `tgimg.hasher`: `XXH64`, `xxh64` and `content_hash`.
- `tgimg.manifest`: the manifest dataclasses, with `write_json` and
  `load_manifest`.

## Manifest format

`tgimg.manifest.json` holds these top-level fields:

- `version`, which is always 1
- `generated_at`
- `profile`
- `base_path`
- `build_info` (workers and pool size)
- `assets`
- `stats`

Each asset in `assets` holds:

- `original`: width, height, format, size and `has_alpha`
- `thumbhash`: base64
- `aspect_ratio`
- `avg_color`: `[R, G, B]`
- `variants`: each with format, width, height, size, a 16-character hash and
  a path relative to the manifest

## What tgimg does not do

- tgimg creates ThumbHash placeholders but does not decode them back into
  images. Showing the placeholders and choosing among the variants is left
  to the client that reads the manifest.
- tgimg does not encode WebP or AVIF itself. Without `cwebp` or `avifenc`,
  those formats are left out.