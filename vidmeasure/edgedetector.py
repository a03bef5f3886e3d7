"""Canny edge detection as a frame middleware."""

from __future__ import annotations

import logging
import math

import numpy as np

from vidmeasure.imageconv import Image, ImageFormat, image_to_mat, mat_to_image
from vidmeasure.middleware import FrameMiddleware

log = logging.getLogger(__name__)

# Fixed kernels used for small apertures when no sigma is given.
_SMALL_KERNELS = {
    1: (1.0,),
    3: (0.25, 0.5, 0.25),
    5: (0.0625, 0.25, 0.375, 0.25, 0.0625),
    7: (0.03125, 0.109375, 0.21875, 0.28125, 0.21875, 0.109375, 0.03125),
}

# tan(22.5 degrees) in 15-bit fixed point.
_TG22 = 13573


def _gaussian_kernel(ksize: int) -> np.ndarray:
    if ksize in _SMALL_KERNELS:
        return np.array(_SMALL_KERNELS[ksize], dtype=np.float64)
    sigma = 0.3 * ((ksize - 1) * 0.5 - 1) + 0.8
    centre = (ksize - 1) / 2
    offsets = np.arange(ksize, dtype=np.float64) - centre
    kernel = np.exp(-(offsets**2) / (2 * sigma * sigma))
    return kernel / kernel.sum()


def gaussian_blur(gray, ksize: int = 5) -> np.ndarray:
    """Blur a mat with a square Gaussian kernel of odd size ``ksize``.

    The sigma is derived from the kernel size and borders are mirrored
    without repeating the edge pixel. The result keeps the input's dtype.
    """
    arr = np.asarray(gray)
    if ksize < 1 or ksize % 2 == 0:
        raise ValueError(f"kernel size must be a positive odd number, not {ksize}")
    if arr.ndim not in (2, 3):
        raise ValueError(f"a mat must have 2 or 3 dimensions, not {arr.ndim}")
    if arr.size == 0:
        return arr.copy()

    kernel = _gaussian_kernel(ksize)
    radius = ksize // 2
    out = arr.astype(np.float64)
    for axis in (0, 1):
        pad = [(0, 0)] * out.ndim
        pad[axis] = (radius, radius)
        padded = np.pad(out, pad, mode="reflect")
        length = out.shape[axis]
        out = sum(
            weight * np.take(padded, np.arange(i, i + length), axis=axis)
            for i, weight in enumerate(kernel)
        )

    if np.issubdtype(arr.dtype, np.integer):
        info = np.iinfo(arr.dtype)
        return np.clip(np.floor(out + 0.5), info.min, info.max).astype(arr.dtype)
    return out.astype(arr.dtype)


def _sobel(gray: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    src = np.pad(gray.astype(np.int32), 1, mode="edge")
    dx = (
        (src[:-2, 2:] - src[:-2, :-2])
        + 2 * (src[1:-1, 2:] - src[1:-1, :-2])
        + (src[2:, 2:] - src[2:, :-2])
    )
    dy = (
        (src[2:, :-2] - src[:-2, :-2])
        + 2 * (src[2:, 1:-1] - src[:-2, 1:-1])
        + (src[2:, 2:] - src[:-2, 2:])
    )
    return dx, dy


def _local_maxima(dx: np.ndarray, dy: np.ndarray, mag: np.ndarray) -> np.ndarray:
    padded = np.pad(mag, 1)
    centre = padded[1:-1, 1:-1]
    left, right = padded[1:-1, :-2], padded[1:-1, 2:]
    up, down = padded[:-2, 1:-1], padded[2:, 1:-1]
    up_left, up_right = padded[:-2, :-2], padded[:-2, 2:]
    down_left, down_right = padded[2:, :-2], padded[2:, 2:]

    ax = np.abs(dx).astype(np.int64)
    ay = np.abs(dy).astype(np.int64) << 15
    tg22 = ax * _TG22
    tg67 = tg22 + (ax << 16)
    horizontal = ay < tg22
    vertical = ~horizontal & (ay > tg67)

    opposite_signs = (dx < 0) != (dy < 0)
    diagonal_max = np.where(
        opposite_signs,
        (centre > up_right) & (centre > down_left),
        (centre > up_left) & (centre > down_right),
    )
    return np.where(
        horizontal,
        (centre > left) & (centre >= right),
        np.where(vertical, (centre > up) & (centre >= down), diagonal_max),
    )


def _hysteresis(strong: np.ndarray, candidate: np.ndarray) -> np.ndarray:
    edges = strong.copy()
    height, width = edges.shape
    stack = np.argwhere(strong).tolist()
    while stack:
        row, col = stack.pop()
        for nr in range(max(row - 1, 0), min(row + 2, height)):
            for nc in range(max(col - 1, 0), min(col + 2, width)):
                if candidate[nr, nc] and not edges[nr, nc]:
                    edges[nr, nc] = True
                    stack.append([nr, nc])
    return edges


def canny(gray, thr1: float, thr2: float) -> np.ndarray:
    """Find edges in an 8-bit single-channel mat with the Canny algorithm.

    Uses a 3x3 Sobel aperture and the L1 gradient norm; the smaller threshold
    is the low one whichever order they are given in. Edge pixels are 255,
    all others 0.
    """
    gray = np.asarray(gray)
    if gray.dtype != np.uint8 or gray.ndim != 2:
        raise ValueError(f"canny needs an 8-bit single-channel mat, not {gray.dtype} {gray.shape}")
    low, high = sorted((math.floor(thr1), math.floor(thr2)))
    if gray.size == 0:
        return np.zeros_like(gray)

    dx, dy = _sobel(gray)
    mag = np.abs(dx) + np.abs(dy)
    candidate = _local_maxima(dx, dy, mag) & (mag > low)
    strong = candidate & (mag > high)
    edges = _hysteresis(strong, candidate)
    return np.where(edges, 255, 0).astype(np.uint8)


def _bgr_to_gray(mat: np.ndarray) -> np.ndarray:
    c = mat.astype(np.int32)
    gray = (c[..., 0] * 1868 + c[..., 1] * 9617 + c[..., 2] * 4899 + (1 << 13)) >> 14
    return gray.astype(np.uint8)


class EdgeDetector(FrameMiddleware):
    """Replace each frame with its Canny edge map."""

    def __init__(self, thr1: float = 100.0, thr2: float = 200.0) -> None:
        self.thr1 = thr1
        self.thr2 = thr2

    def __repr__(self) -> str:
        return f"EdgeDetector(thr1={self.thr1!r}, thr2={self.thr2!r})"

    def process_frame(self, img: Image) -> Image:
        """Return the edge map of ``img`` as an 8-bit indexed grayscale image.

        A frame that cannot be processed is returned unchanged.
        """
        if img.is_null():
            log.debug("null image")
            return img

        log.debug("image format: %s size: %s", img.format.name, img.size)
        if img.format not in (ImageFormat.RGB32, ImageFormat.ARGB32):
            log.debug("converting image to RGB32")
            converted = img.convert_to_format(ImageFormat.RGB32)
            if converted.is_null():
                log.debug("failed to convert image to RGB32")
                return img
            img = converted

        mat = image_to_mat(img)
        if mat.size == 0:
            log.debug("empty mat")
            return img
        if mat.ndim != 3 or mat.shape[2] not in (3, 4):
            log.debug("cannot convert mat of shape %s to gray", mat.shape)
            return img

        gray = _bgr_to_gray(mat)
        gray = gaussian_blur(gray, 5)
        edges = canny(gray, self.thr1, self.thr2)
        return mat_to_image(edges)