"""Parallel build pipeline: scan sources, process them, collect a manifest."""

from __future__ import annotations

import os
import sys
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path

from tgimg.encoders import EncoderRegistry
from tgimg.manifest import BuildInfo, Manifest, new_manifest
from tgimg.processor import ProcessResult, process_image
from tgimg.profile import DEFAULT_PROFILE, Profile, get_profile
from tgimg.scanner import Source, scan_images

# Approximate size of one worker's placeholder work buffer.
POOL_ENTRY_KB = 167


class PipelineError(RuntimeError):
    """Raised when a build cannot produce a manifest."""


@dataclass
class PipelineConfig:
    """Parameters for one pipeline run."""

    input_dir: str | Path
    output_dir: str | Path
    profile: Profile = field(default_factory=lambda: get_profile(DEFAULT_PROFILE))
    workers: int = 0
    verbose: bool = False
    no_regress_size: bool = False


def _log(message: str) -> None:
    print(f"[tgimg] {message}", file=sys.stderr)


class Pipeline:
    """Orchestrates image processing over a directory."""

    def __init__(self, config: PipelineConfig, registry: EncoderRegistry | None = None) -> None:
        if config.workers <= 0:
            config = replace(config, workers=os.cpu_count() or 1)
        self.config = config
        self.registry = registry if registry is not None else EncoderRegistry()

    def _process(self, source: Source) -> ProcessResult | OSError:
        if self.config.verbose:
            _log(f"processing: {source.key}")
        try:
            result = process_image(source, self.config, self.registry)
        except OSError as exc:
            return exc
        if self.config.verbose:
            _log(f"done: {source.key} ({len(result.asset.variants)} variants)")
        return result

    def run(self) -> Manifest:
        """Run the build and return the manifest; raises PipelineError on failure."""
        cfg = self.config
        if cfg.verbose:
            _log(str(self.registry))

        try:
            sources = scan_images(cfg.input_dir)
        except OSError as exc:
            raise PipelineError(f"scan: {exc}") from exc
        if not sources:
            raise PipelineError(f"no images found in {cfg.input_dir}")
        if cfg.verbose:
            _log(f"found {len(sources)} images")

        with ThreadPoolExecutor(max_workers=cfg.workers) as pool:
            outcomes = list(pool.map(self._process, sources))

        manifest = new_manifest(cfg.profile.name)
        errors: list[OSError] = []
        skipped = 0
        for outcome in outcomes:
            if isinstance(outcome, OSError):
                errors.append(outcome)
                continue
            manifest.assets[outcome.key] = outcome.asset
            skipped += outcome.skipped_regress

        if errors:
            for error in errors:
                _log(f"error: {error}")
            if len(errors) == len(sources):
                raise PipelineError(f"all {len(errors)} images failed to process")
            _log(f"warning: {len(errors)} of {len(sources)} images had errors")

        manifest.build_info = BuildInfo(workers=cfg.workers, pool_entry_kb=POOL_ENTRY_KB)
        manifest.compute_stats()
        manifest.stats.skipped_regress = skipped
        return manifest