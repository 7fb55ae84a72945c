#!/usr/bin/env python3
"""Render a background and write it to disk.

Parameter resolution (later wins):
    1. Preset (--preset, else the scene's preset, else the catalog default)
       or a generation.v1.yaml file (--config) instead of a preset
    2. Scene ``config`` overrides (--scene)
    3. --set KEY=VALUE overrides (values parsed as YAML scalars)
    4. --canvas-size / --format

Writes ``bgenerator-{size}x{size}.{ext}`` plus a ``.meta.yaml`` sidecar with
the resolved config, noise seed, SHA-256 of the bytes and stage timings.

Usage:
    # Default preset, random seed
    python scripts/generate.py --out-dir outputs/

    # Reproducible warm texture at 4096 px as WebP
    python scripts/generate.py --preset warm --canvas-size 4096 --format webp --seed 42

    # Scene with overlays and mock widgets, grain override
    python scripts/generate.py --scene configs/scene.example.yaml --set grain_intensity=30
"""
import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import yaml
from pydantic import ValidationError

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from bgenerator import __version__
from bgenerator.compositing import decode
from bgenerator.compositing.decode import DecodeError
from bgenerator.compositing.overlays import OverlayCapacityError, OverlayImage, OverlayStack
from bgenerator.compositing.widgets import MockWidget
from bgenerator.synth import encoder, pipeline
from bgenerator.synth.encoder import EncodeError
from bgenerator.synth.noise import SeededNoise
from bgenerator.synth.pipeline import SurfaceUnavailableError
from bgenerator.utils import fs, hashing, logging_config, validators
from bgenerator.utils.profiler import StageTimings
from bgenerator.utils.validators import CANVAS_SIZES, ConfigError, ExportFormat

logger = logging_config.get_logger("generate")

DEFAULT_OUT_DIR = Path("outputs")


def parse_overrides(pairs: List[str]) -> Dict[str, Any]:
    """Parse KEY=VALUE strings; values are YAML scalars ("30" -> 30)."""
    overrides = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ConfigError(f"Expected KEY=VALUE, got '{pair}'")
        overrides[key.strip()] = yaml.safe_load(value)
    return overrides


def parse_seed(value: Optional[str]) -> int:
    """Integer seeds are used as-is, other strings are hashed, None draws one."""
    if value is None:
        return int(np.random.SeedSequence().entropy % (2 ** 32))
    try:
        return int(value)
    except ValueError:
        return hashing.seed_from_str(value)


def resolve_config(
    args: argparse.Namespace,
    scene: Optional[validators.SceneV1]
) -> validators.GenerationConfig:
    if args.config is not None:
        cfg = validators.load_generation_config(args.config)
        args.preset = None
    else:
        catalog = validators.load_preset_catalog(args.presets)
        preset_id = args.preset or (scene.preset if scene else None) or catalog.default or catalog.ids()[0]
        cfg = catalog.get(preset_id).config
        args.preset = preset_id

    changes: Dict[str, Any] = {}
    if scene is not None:
        changes.update(scene.config)
    changes.update(parse_overrides(args.set))
    if args.canvas_size is not None:
        changes["canvas_size"] = args.canvas_size
    if args.format is not None:
        changes["export_format"] = args.format
    return cfg.replace(**changes) if changes else cfg


def build_layers(scene: Optional[validators.SceneV1], scene_dir: Path):
    """Decode scene overlays (paths relative to the scene file) and build widgets."""
    overlays = OverlayStack()
    widgets: List[MockWidget] = []
    if scene is None:
        return overlays, widgets

    for i, entry in enumerate(scene.overlays):
        path = Path(entry.path)
        if not path.is_absolute():
            path = scene_dir / path
        bitmap = decode.decode_file(path)
        try:
            overlays.add(OverlayImage(
                bitmap=bitmap,
                opacity=entry.opacity,
                scale=entry.scale,
                x=entry.x,
                y=entry.y,
            ))
        except ValidationError as e:
            raise ConfigError(f"Scene overlays[{i}] ({entry.path}): {e.errors()[0]['msg']}") from e
    for i, entry in enumerate(scene.widgets):
        try:
            widgets.append(MockWidget(
                kind=entry.kind,
                x=entry.x,
                y=entry.y,
                scale=entry.scale,
                text=entry.text,
                variant=entry.variant,
            ))
        except ValidationError as e:
            raise ConfigError(f"Scene widgets[{i}] ({entry.kind.value}): {e.errors()[0]['msg']}") from e
    return overlays, widgets


def main() -> int:
    """CLI entrypoint for background generation."""
    parser = argparse.ArgumentParser(
        description="Generate a textured background image",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Canvas sizes: {', '.join(str(s) for s in CANVAS_SIZES)}
Formats:      {', '.join(f.value for f in ExportFormat)}
""",
    )
    parser.add_argument("--preset", type=str, default=None, help="Preset id (see configs/presets.v1.yaml)")
    parser.add_argument(
        "--presets",
        type=Path,
        default=None,
        help=f"Preset catalog (default: {validators.DEFAULT_PRESETS_PATH})",
    )
    parser.add_argument("--config", type=Path, default=None, help="generation.v1.yaml (replaces the preset)")
    parser.add_argument("--scene", type=Path, default=None, help="scene.v1.yaml with overlays and widgets")
    parser.add_argument(
        "--set",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override one parameter (repeatable), e.g. --set grain_intensity=30",
    )
    parser.add_argument("--canvas-size", type=int, choices=CANVAS_SIZES, default=None)
    parser.add_argument("--format", type=str, choices=[f.value for f in ExportFormat], default=None)
    parser.add_argument("--seed", type=str, default=None, help="Noise seed (int or any string)")
    parser.add_argument("--preview", action="store_true", help="Skip mock widget rasterization")
    parser.add_argument(
        "--out-dir",
        type=Path,
        default=DEFAULT_OUT_DIR,
        help=f"Output directory (default: {DEFAULT_OUT_DIR})",
    )

    # Logging
    parser.add_argument("--log-file", type=str, default=None, help="Also log to this file")
    parser.add_argument("--json-logs", action="store_true", help="JSON log lines")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    log_level = "DEBUG" if args.verbose else "INFO"
    logging_config.setup_logging(log_level=log_level, log_file=args.log_file, json=args.json_logs)
    logging_config.install_excepthook()
    logging_config.push_context(app="generate")

    try:
        scene = validators.load_scene(args.scene) if args.scene is not None else None
        cfg = resolve_config(args, scene)
        scene_dir = args.scene.parent if args.scene is not None else Path.cwd()
        overlays, widgets = build_layers(scene, scene_dir)

        seed = parse_seed(args.seed)
        noise = SeededNoise(seed)
        timings = StageTimings()

        if args.preview:
            buffer = pipeline.render_preview(cfg, overlays, widgets, noise=noise, timings=timings)
            data, mime = encoder.encode(buffer, cfg.export_format)
            filename = encoder.export_filename(cfg.canvas_size, cfg.export_format)
        else:
            result = pipeline.export(cfg, overlays, widgets, noise=noise, timings=timings)
            data, mime, filename = result.data, result.mime_type, result.filename

        image_path = encoder.write_export(data, filename, args.out_dir)
        meta = {
            "generator": f"bgenerator {__version__}",
            "file": image_path.name,
            "mime_type": mime,
            "sha256": hashing.sha256_bytes(data),
            "seed": seed,
            "preset": args.preset,
            "preview": bool(args.preview),
            "config": cfg.to_yaml_dict(),
            "overlays": len(overlays),
            "widgets": 0 if args.preview else len(widgets),
            "timings_s": timings.as_dict(),
        }
        meta_path = fs.atomic_yaml_dump(meta, image_path.with_name(image_path.name + ".meta.yaml"))
    except (ConfigError, FileNotFoundError, DecodeError, OverlayCapacityError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 2
    except (EncodeError, SurfaceUnavailableError, RuntimeError) as e:
        logger.error(f"Generation failed: {e}")
        return 1
    finally:
        logging_config.pop_context(["app"])

    logger.info(f"Done in {timings.total:.2f} s: {image_path} (seed {seed}, metadata {meta_path.name})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
