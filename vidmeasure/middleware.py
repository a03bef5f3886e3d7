"""Frame processing stages applied to each video frame before display."""

from __future__ import annotations

from abc import ABC, abstractmethod

from vidmeasure.imageconv import Image


class FrameMiddleware(ABC):
    """A stage of the frame processing pipeline.

    Subclasses implement :meth:`process_frame`. It receives the current frame
    and returns the frame to hand on to the next stage. That may be the same
    image, unchanged, when there is nothing to do.
    """

    @abstractmethod
    def process_frame(self, img: Image) -> Image:
        """Process ``img`` and return the resulting frame."""