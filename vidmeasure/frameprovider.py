"""Sources of video frames that acquire frames on a worker thread."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Callable, Optional

from vidmeasure.imageconv import Image


class FrameProvider(ABC):
    """A source of video frames, such as a camera or a network stream.

    Acquisition runs :meth:`run` on a worker thread started by :meth:`start`.
    Implementations call :meth:`publish_frame` for each new frame and
    :meth:`_notify_ready` once the source is set up.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._frame = Image()
        self._frame_ready = False
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._ready: Optional[Callable[[], None]] = None

    def __enter__(self) -> FrameProvider:
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    @abstractmethod
    def device_descriptions(self) -> list[str]:
        """Return descriptions of the devices this provider can read from."""

    @abstractmethod
    def set_device(self, desc: str) -> None:
        """Make the device described by ``desc`` the active one."""

    @abstractmethod
    def available_formats(self) -> list[str]:
        """Return the formats of the active device as "width,height" strings."""

    @abstractmethod
    def set_format(self, idx: int) -> None:
        """Select the active device's format by its index."""

    @abstractmethod
    def set_url(self, url: str) -> None:
        """Set the address of a streaming source."""

    @abstractmethod
    def run(self) -> None:
        """Acquire frames; runs on the worker thread."""

    @property
    def is_ready(self) -> bool:
        """True when a frame has arrived that has not been taken yet."""
        with self._lock:
            return self._frame_ready

    @property
    def is_running(self) -> bool:
        return self._running

    def get_frame(self) -> Image:
        """Return the latest frame and mark it as taken."""
        with self._lock:
            self._frame_ready = False
            return self._frame

    def publish_frame(self, frame: Image) -> None:
        """Store ``frame`` as the latest frame and mark it as ready."""
        with self._lock:
            self._frame = frame
            self._frame_ready = True

    def start(self, ready: Optional[Callable[[], None]] = None) -> None:
        """Start acquisition on a worker thread; does nothing if already running."""
        if self._running:
            return
        self._ready = ready
        self._running = True
        self._thread = threading.Thread(
            target=self.run, name=type(self).__name__, daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop acquisition and wait for the worker thread to finish."""
        if not self._running:
            return
        self._running = False
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _notify_ready(self) -> None:
        if self._ready is not None:
            self._ready()