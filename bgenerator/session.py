"""Control-panel session: current parameters, layers and debounced rendering.

A CanvasSession is the headless equivalent of the interactive control panel.
It owns:
    - the current GenerationConfig (replaced wholesale on every change)
    - the selected preset id (None once a parameter is edited by hand)
    - an OverlayStack (max 10) and a WidgetStack
    - the latest completed preview buffer

Rendering:
    - Every mutation calls request_render(), which (re)starts a debounce
      timer (default 50 ms); only the last request in a burst renders.
    - Renders are serialized by a lock and each run renders a snapshot of
      the state taken when it starts, into its own buffer.
    - Runs are numbered; a run is published to ``latest`` only if no newer
      run has been published already.

Usage:
    with CanvasSession(preset="warm") as session:
        session.set_params(grain_intensity=30)
        session.add_widget("button")
        buf = session.render_now()
        result = session.export()
"""

import itertools
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional, Tuple

import numpy as np

from bgenerator.compositing import decode
from bgenerator.compositing.overlays import OverlayCapacityError, OverlayImage, OverlayStack
from bgenerator.compositing.widgets import MockWidget, WidgetStack, make_widget
from bgenerator.synth import pipeline
from bgenerator.synth.noise import EntropyNoise, NoiseSource
from bgenerator.synth.raster import RasterBuffer
from bgenerator.utils.validators import GenerationConfig, PresetCatalog, load_preset_catalog

logger = logging.getLogger(__name__)

DEBOUNCE_S = 0.05

Snapshot = Tuple[GenerationConfig, Tuple[OverlayImage, ...], Tuple[MockWidget, ...]]


class CanvasSession:
    """Mutable editing state plus debounced preview rendering.

    Parameters
    ----------
    config : GenerationConfig, optional
        Starting parameters; overrides ``preset``
    preset : str, optional
        Preset id to start from (default: the catalog's default preset)
    catalog : PresetCatalog, optional
        Preset catalog (default: the shipped configs/presets.v1.yaml)
    noise_factory : callable, optional
        Returns a fresh NoiseSource per run (default: EntropyNoise)
    debounce_s : float
        Quiet period before a requested render starts
    on_render : callable, optional
        Called as on_render(buffer, run_id) after a run is published
    executor : ThreadPoolExecutor, optional
        Pool used for overlay decoding
    """

    def __init__(
        self,
        config: Optional[GenerationConfig] = None,
        *,
        preset: Optional[str] = None,
        catalog: Optional[PresetCatalog] = None,
        noise_factory: Optional[Callable[[], NoiseSource]] = None,
        debounce_s: float = DEBOUNCE_S,
        on_render: Optional[Callable[[RasterBuffer, int], None]] = None,
        executor: Optional[ThreadPoolExecutor] = None
    ):
        self.catalog = catalog if catalog is not None else load_preset_catalog()
        self.noise_factory = noise_factory or EntropyNoise
        self.debounce_s = debounce_s
        self.on_render = on_render
        self._executor = executor

        self._state_lock = threading.RLock()
        self._render_lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._run_ids = itertools.count(1)
        self._published_run = 0
        self._latest: Optional[RasterBuffer] = None
        self._closed = False
        self.last_error: Optional[BaseException] = None

        self.overlays = OverlayStack()
        self.widgets = WidgetStack()

        if config is not None:
            self._config = config
            self._preset_id = preset
        else:
            self._preset_id = preset or self.catalog.default or self.catalog.ids()[0]
            self._config = self.catalog.get(self._preset_id).config

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def config(self) -> GenerationConfig:
        return self._config

    @property
    def preset_id(self) -> Optional[str]:
        return self._preset_id

    @property
    def latest(self) -> Optional[RasterBuffer]:
        """Last published preview buffer (None before the first run)."""
        return self._latest

    def snapshot(self) -> Snapshot:
        """Consistent (config, overlays, widgets) view for one run."""
        with self._state_lock:
            return self._config, self.overlays.snapshot(), self.widgets.snapshot()

    def set_params(self, **changes: Any) -> GenerationConfig:
        """Apply parameter changes (validated as a whole).

        Raises
        ------
        ConfigError
            If the changed config is invalid; the session is unchanged
        """
        with self._state_lock:
            self._config = self._config.replace(**changes)
            self._preset_id = None
            cfg = self._config
        logger.debug(f"Params changed: {sorted(changes)}")
        self.request_render()
        return cfg

    def apply_preset(self, preset_id: str) -> GenerationConfig:
        """Replace the whole config with a preset's (ConfigError if unknown)."""
        preset = self.catalog.get(preset_id)
        with self._state_lock:
            self._config = preset.config
            self._preset_id = preset.id
        logger.info(f"Applied preset '{preset.id}' ({preset.name})")
        self.request_render()
        return preset.config

    # ------------------------------------------------------------------
    # Overlays
    # ------------------------------------------------------------------

    def add_overlay(self, bitmap: np.ndarray, **placement: Any) -> OverlayImage:
        """Add a decoded bitmap on top (OverlayCapacityError when full)."""
        overlay = OverlayImage(bitmap=bitmap, **placement)
        with self._state_lock:
            self.overlays.add(overlay)
        logger.info(f"Added overlay {overlay.id} ({len(self.overlays)}/{self.overlays.capacity})")
        self.request_render()
        return overlay

    def add_overlay_bytes(self, data: bytes, **placement: Any) -> 'Future[OverlayImage]':
        """Decode ``data`` off-thread, then add it as an overlay.

        Capacity is checked before decoding. The returned future raises
        DecodeError on bad data (the session is untouched) or
        OverlayCapacityError if the stack filled up while decoding.
        """
        if self.overlays.is_full:
            raise OverlayCapacityError(f"Stack is full ({self.overlays.capacity} items)")

        result: 'Future[OverlayImage]' = Future()
        decoded = decode.decode_bitmap_async(data, executor=self._executor)

        def _on_decoded(fut: Future) -> None:
            if fut.cancelled():
                result.cancel()
                return
            error = fut.exception()
            if error is not None:
                result.set_exception(error)
                return
            try:
                result.set_result(self.add_overlay(fut.result(), **placement))
            except (OverlayCapacityError, ValueError) as e:
                result.set_exception(e)

        decoded.add_done_callback(_on_decoded)
        return result

    def update_overlay(self, overlay_id: str, **changes: Any) -> OverlayImage:
        with self._state_lock:
            overlay = self.overlays.update(overlay_id, **changes)
        self.request_render()
        return overlay

    def remove_overlay(self, overlay_id: str) -> OverlayImage:
        with self._state_lock:
            overlay = self.overlays.remove(overlay_id)
        self.request_render()
        return overlay

    # ------------------------------------------------------------------
    # Widgets (export only: no preview re-render needed)
    # ------------------------------------------------------------------

    def add_widget(self, kind: str, **fields: Any) -> MockWidget:
        widget = make_widget(kind, **fields)
        with self._state_lock:
            self.widgets.add(widget)
        logger.debug(f"Added widget {widget.id} ({widget.kind.value})")
        return widget

    def update_widget(self, widget_id: str, **changes: Any) -> MockWidget:
        with self._state_lock:
            return self.widgets.update(widget_id, **changes)

    def remove_widget(self, widget_id: str) -> MockWidget:
        with self._state_lock:
            return self.widgets.remove(widget_id)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def request_render(self) -> None:
        """(Re)start the debounce timer; the render runs on a timer thread."""
        with self._state_lock:
            if self._closed:
                return
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce_s, self._debounced_render)
            self._timer.daemon = True
            self._timer.start()

    def _debounced_render(self) -> None:
        try:
            self.render_now()
        except Exception as e:
            self.last_error = e
            logger.exception(f"Debounced render failed: {e}")

    def render_now(self) -> RasterBuffer:
        """Render the current state synchronously and publish it."""
        cfg, overlays, _ = self.snapshot()
        run_id = next(self._run_ids)
        with self._render_lock:
            buffer = pipeline.render_preview(cfg, overlays, noise=self.noise_factory())

        with self._state_lock:
            if run_id <= self._published_run:
                logger.debug(f"Run {run_id} superseded by run {self._published_run}")
                return buffer
            self._latest = buffer
            self._published_run = run_id
            self.last_error = None

        if self.on_render is not None:
            self.on_render(buffer, run_id)
        return buffer

    def export(self) -> pipeline.ExportResult:
        """Export render (widgets included) of the current state."""
        cfg, overlays, widgets = self.snapshot()
        return pipeline.export(cfg, overlays, widgets, noise=self.noise_factory())

    def close(self) -> None:
        """Cancel any pending render; later requests are ignored."""
        with self._state_lock:
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def __enter__(self) -> 'CanvasSession':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"CanvasSession(preset={self._preset_id!r}, canvas={self._config.canvas_size}, "
            f"overlays={len(self.overlays)}, widgets={len(self.widgets)})"
        )
