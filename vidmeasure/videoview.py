"""A view that shows frames from a set of providers and measures on them."""

from __future__ import annotations

import threading
from typing import Callable, Iterable

from vidmeasure.edgedetector import EdgeDetector
from vidmeasure.frameprovider import FrameProvider
from vidmeasure.imageconv import Image
from vidmeasure.middleware import FrameMiddleware
from vidmeasure.painter import MouseEvent, Scene, SurfacePainter

FRAME_UPDATE_PERIOD_MS = 50
ZOOM_STEP = 0.05
MIN_ZOOM = 0.05
MAX_ZOOM = 1.0


class Signal:
    """A list of callbacks called with the emitted arguments."""

    def __init__(self) -> None:
        self._slots: list[Callable] = []

    def connect(self, slot: Callable) -> None:
        self._slots.append(slot)

    def emit(self, *args) -> None:
        for slot in list(self._slots):
            slot(*args)


class VideoView:
    """Displays frames of the active provider, run through the middleware chain.

    The first provider given is the default source; further ones are added
    as with :meth:`add_source`.
    """

    def __init__(self, providers: Iterable[FrameProvider] = ()) -> None:
        self.scene = Scene()
        self.painter = SurfacePainter(self.scene)
        self.providers: list[FrameProvider] = []
        self.middlewares: list[FrameMiddleware] = []
        self.current_index = 0
        self.zoom_factor = 0.5
        self.transform_scale = 1.0
        self.viewport_size = (0, 0)
        self.current_frame = Image()
        self.video_sources: list[str] = []
        self.video_formats: list[str] = []
        self.video_sources_changed = Signal()
        self.video_formats_changed = Signal()
        self._lock = threading.Lock()

        providers = list(providers)
        if providers:
            default, *others = providers
            self.providers.append(default)
            default.start(lambda: self._default_ready(default))
            for provider in others:
                self.add_source(provider)

    def __enter__(self) -> VideoView:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Stop every provider."""
        for provider in self.providers:
            provider.stop()

    def _default_ready(self, provider: FrameProvider) -> None:
        with self._lock:
            self.video_sources.extend(provider.device_descriptions())
            self.video_formats = list(provider.available_formats())
            sources, formats = list(self.video_sources), list(self.video_formats)
        self.video_sources_changed.emit(sources)
        self.video_formats_changed.emit(formats)

    def _source_ready(self, provider: FrameProvider) -> None:
        with self._lock:
            self.video_sources.extend(provider.device_descriptions())
            sources = list(self.video_sources)
        self.video_sources_changed.emit(sources)

    def add_source(self, provider: FrameProvider) -> None:
        """Add a provider as another video source and start it."""
        self.providers.append(provider)
        provider.start(lambda: self._source_ready(provider))

    def mouse_pressed(self, event: MouseEvent) -> None:
        self.painter.handle_mouse_pressed(event)

    def mouse_moved(self, event: MouseEvent) -> None:
        self.painter.handle_mouse_moved(event)

    def mouse_released(self, event: MouseEvent) -> None:
        self.painter.handle_mouse_released(event)

    def update_frame(self) -> bool:
        """Show the active provider's new frame, if any; return whether one was shown."""
        if not self.providers:
            return False
        provider = self.providers[self.current_index]
        if not provider.is_ready:
            return False
        frame = provider.get_frame()
        for middleware in self.middlewares:
            frame = middleware.process_frame(frame)
        self.current_frame = frame
        self._update_video_size(frame)
        return True

    def _update_video_size(self, img: Image) -> None:
        self.scene.set_scene_rect(0, 0, img.width, img.height)
        self.painter.set_font_size(min(img.width // 30, 60))
        self.painter.set_line_width(min(img.width // 300, 5))
        self.transform_scale = self.zoom_factor

    def _fit_in_view(self) -> None:
        view_w, view_h = self.viewport_size
        frame_w, frame_h = self.current_frame.size
        if view_w > 0 and view_h > 0 and frame_w > 0 and frame_h > 0:
            self.transform_scale = min(view_w / frame_w, view_h / frame_h)

    def change_video_src(self, src: str) -> None:
        """Make the provider offering the source ``src`` active."""
        for idx, provider in enumerate(self.providers):
            for desc in provider.device_descriptions():
                if desc == src:
                    self.current_index = idx
                    provider.set_device(src)
                    self.video_formats_changed.emit(list(provider.available_formats()))

    def change_video_fmt(self, idx: int) -> None:
        self.providers[self.current_index].set_format(idx)

    def inc_zoom(self) -> None:
        self.zoom_factor = min(self.zoom_factor + ZOOM_STEP, MAX_ZOOM)
        self.transform_scale = self.zoom_factor
        self._fit_in_view()

    def dec_zoom(self) -> None:
        self.zoom_factor = max(self.zoom_factor - ZOOM_STEP, MIN_ZOOM)
        self.transform_scale = self.zoom_factor
        self._fit_in_view()

    def fit(self) -> None:
        """Fit the current frame to the viewport, resetting the zoom."""
        self.scene.set_scene_rect(0, 0, self.current_frame.width, self.current_frame.height)
        self.zoom_factor = 1.0
        self.transform_scale = 1.0
        self._fit_in_view()

    def use_edge_detector(self, use: bool) -> None:
        if use:
            if not self.has_middleware(EdgeDetector):
                self.add_middleware(EdgeDetector())
        else:
            self.remove_middleware(EdgeDetector)

    def add_middleware(self, middleware: FrameMiddleware) -> None:
        self.middlewares.append(middleware)

    def has_middleware(self, kind: type) -> bool:
        return any(isinstance(mw, kind) for mw in self.middlewares)

    def remove_middleware(self, kind: type) -> None:
        self.middlewares = [mw for mw in self.middlewares if not isinstance(mw, kind)]