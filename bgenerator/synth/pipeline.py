"""Single render pipeline shared by preview and export.

Stage order (fixed):
    fill → tint → grain → tone → blur → vignette → overlays → widgets

Widgets only run when ``rasterize_widgets`` is set, which is the one and only
difference between :func:`render_preview` and :func:`render_export`. Both
produce byte-identical buffers through the overlay stage for the same noise
stream.

Each call allocates its own RasterBuffer and returns it; nothing is shared
between runs. Noise is injected (``noise``); when omitted a fresh
EntropyNoise is used, so unseeded runs differ while seeded runs are
reproducible.

Usage:
    from bgenerator.synth import pipeline
    from bgenerator.synth.noise import SeededNoise

    buf = pipeline.render_preview(cfg, overlays, noise=SeededNoise(7))
    result = pipeline.export(cfg, overlays, widgets, noise=SeededNoise(7))
    result.data, result.mime_type, result.filename
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Union

from bgenerator.compositing.overlays import OverlayImage, composite_overlays
from bgenerator.compositing.widgets import MockWidget
from bgenerator.compositing.widgets import rasterize_widgets as draw_widgets
from bgenerator.synth import encoder, stages, tone
from bgenerator.synth.noise import EntropyNoise, NoiseSource
from bgenerator.synth.raster import RasterBuffer
from bgenerator.utils import hashing
from bgenerator.utils.logging_config import bound_context
from bgenerator.utils.profiler import StageTimings, timer
from bgenerator.utils.validators import GenerationConfig, build_generation_config

logger = logging.getLogger(__name__)


class SurfaceUnavailableError(RuntimeError):
    """Raised when the pixel buffer for a run cannot be allocated."""

    pass


@dataclass(frozen=True, slots=True)
class ExportResult:
    """Encoded export of one render."""

    data: bytes
    mime_type: str
    filename: str

    @property
    def sha256(self) -> str:
        return hashing.sha256_bytes(self.data)


def _coerce_config(config: Union[GenerationConfig, Dict[str, Any]]) -> GenerationConfig:
    if isinstance(config, GenerationConfig):
        return config
    return build_generation_config(config)


def _allocate(size: int) -> RasterBuffer:
    try:
        return RasterBuffer(size)
    except MemoryError as e:
        logger.error(f"Cannot allocate {size}x{size} RGBA buffer")
        raise SurfaceUnavailableError(f"Cannot allocate a {size}x{size} surface") from e


def render(
    config: Union[GenerationConfig, Dict[str, Any]],
    overlays: Iterable[OverlayImage] = (),
    widgets: Optional[Iterable[MockWidget]] = None,
    *,
    noise: Optional[NoiseSource] = None,
    rasterize_widgets: bool = False,
    timings: Optional[StageTimings] = None
) -> RasterBuffer:
    """Run every stage and return a freshly allocated buffer.

    Parameters
    ----------
    config : GenerationConfig or dict
        Complete parameter set (a dict is validated first)
    overlays : iterable of OverlayImage
        Painted in iteration order
    widgets : iterable of MockWidget, optional
        Painted in iteration order, only when ``rasterize_widgets``
    noise : NoiseSource, optional
        Grain variate stream (default: EntropyNoise())
    rasterize_widgets : bool
        Run the widget stage (export) or not (preview)
    timings : StageTimings, optional
        Receives per-stage wall-clock times

    Returns
    -------
    RasterBuffer
        Owned by the caller

    Raises
    ------
    ConfigError
        If ``config`` is an invalid mapping (no pixel work is done)
    SurfaceUnavailableError
        If the buffer cannot be allocated (no buffer is returned)
    """
    cfg = _coerce_config(config)
    noise = noise if noise is not None else EntropyNoise()
    timings = timings if timings is not None else StageTimings(logger)
    overlays = tuple(overlays)
    widgets = tuple(widgets) if (widgets is not None and rasterize_widgets) else ()

    size = cfg.canvas_size
    with bound_context(canvas=size, mode="export" if rasterize_widgets else "preview"):
        with timer("allocate", sink=timings.record):
            buffer = _allocate(size)

        with timer("fill", sink=timings.record):
            stages.fill(buffer, cfg.base_rgb)

        with timer("tint", sink=timings.record):
            stages.tint(buffer, cfg.tint_rgb, cfg.tint_strength)

        if cfg.grain_intensity > 0 or cfg.tone_active:
            with timer("grain", sink=timings.record):
                try:
                    levels = buffer.rgb_levels()
                except MemoryError as e:
                    raise SurfaceUnavailableError(f"Cannot allocate {size}x{size} float levels") from e
                stages.grain(levels, cfg, noise)
            with timer("tone", sink=timings.record):
                tone.apply_tone_config(levels, cfg)
                buffer.store_rgb(levels)
            del levels

        with timer("blur", sink=timings.record):
            stages.blur(buffer, cfg.blur_radius)

        with timer("vignette", sink=timings.record):
            stages.vignette(buffer, cfg.vignette_strength)

        if overlays:
            with timer("overlays", sink=timings.record):
                composite_overlays(buffer, overlays)

        if widgets:
            with timer("widgets", sink=timings.record):
                draw_widgets(buffer, widgets)

        logger.info(
            f"Rendered {size}x{size} in {timings.total:.3f} s "
            f"({len(overlays)} overlays, {len(widgets)} widgets)"
        )
    return buffer


def render_preview(
    config: Union[GenerationConfig, Dict[str, Any]],
    overlays: Iterable[OverlayImage] = (),
    widgets: Optional[Iterable[MockWidget]] = None,
    *,
    noise: Optional[NoiseSource] = None,
    timings: Optional[StageTimings] = None
) -> RasterBuffer:
    """Preview render: widgets are never rasterized."""
    return render(config, overlays, widgets, noise=noise, rasterize_widgets=False, timings=timings)


def render_export(
    config: Union[GenerationConfig, Dict[str, Any]],
    overlays: Iterable[OverlayImage] = (),
    widgets: Optional[Iterable[MockWidget]] = None,
    *,
    noise: Optional[NoiseSource] = None,
    timings: Optional[StageTimings] = None
) -> RasterBuffer:
    """Export render: widgets are rasterized on top of the overlays."""
    return render(config, overlays, widgets, noise=noise, rasterize_widgets=True, timings=timings)


def export(
    config: Union[GenerationConfig, Dict[str, Any]],
    overlays: Iterable[OverlayImage] = (),
    widgets: Optional[Iterable[MockWidget]] = None,
    *,
    noise: Optional[NoiseSource] = None,
    timings: Optional[StageTimings] = None
) -> ExportResult:
    """Render for export and encode in ``config.export_format``.

    Raises
    ------
    EncodeError
        If encoding fails (no result is produced)
    """
    cfg = _coerce_config(config)
    buffer = render_export(cfg, overlays, widgets, noise=noise, timings=timings)
    if timings is None:
        data, mime = encoder.encode(buffer, cfg.export_format)
    else:
        with timer("encode", sink=timings.record):
            data, mime = encoder.encode(buffer, cfg.export_format)
    return ExportResult(
        data=data,
        mime_type=mime,
        filename=encoder.export_filename(cfg.canvas_size, cfg.export_format),
    )
