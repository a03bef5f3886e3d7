"""Conversion between raster images and numpy pixel matrices.

An :class:`Image` models a raster image in one of a fixed set of pixel
formats.  A *mat* is a plain numpy array of shape ``(h, w)`` or
``(h, w, c)`` with ``c`` in 1, 3 or 4 and a dtype of ``uint8`` (0..255),
``uint16`` (0..65535) or ``float32`` (0..1).
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import IntEnum

import numpy as np


class ImageFormat(IntEnum):
    """Pixel formats an :class:`Image` may hold."""

    INVALID = 0
    MONO = 1
    MONO_LSB = 2
    INDEXED8 = 3
    RGB32 = 4
    ARGB32 = 5
    ARGB32_PREMULTIPLIED = 6
    RGB16 = 7
    ARGB8565_PREMULTIPLIED = 8
    RGB666 = 9
    ARGB6666_PREMULTIPLIED = 10
    RGB555 = 11
    ARGB8555_PREMULTIPLIED = 12
    RGB888 = 13
    RGB444 = 14
    ARGB4444_PREMULTIPLIED = 15
    RGBX8888 = 16
    RGBA8888 = 17
    RGBA8888_PREMULTIPLIED = 18
    BGR30 = 19
    A2BGR30_PREMULTIPLIED = 20
    RGB30 = 21
    A2RGB30_PREMULTIPLIED = 22
    ALPHA8 = 23
    GRAYSCALE8 = 24


class ColorOrder(IntEnum):
    """Channel order of a 3- or 4-channel mat."""

    BGR = 0
    RGB = 1
    BGRA = 0
    RGBA = 1
    ARGB = 2


F = ImageFormat

_RGB32_FORMATS = frozenset({F.RGB32, F.ARGB32, F.ARGB32_PREMULTIPLIED})
_RGBA8888_FORMATS = frozenset({F.RGBX8888, F.RGBA8888, F.RGBA8888_PREMULTIPLIED})
_FOUR_CHANNEL_FORMATS = _RGB32_FORMATS | _RGBA8888_FORMATS
_INDEXED_FORMATS = frozenset({F.MONO, F.MONO_LSB, F.INDEXED8})
_SINGLE_CHANNEL_FORMATS = frozenset({F.INDEXED8, F.ALPHA8, F.GRAYSCALE8})
_PREMULTIPLIED = frozenset({F.ARGB32_PREMULTIPLIED, F.RGBA8888_PREMULTIPLIED})

# Bits per channel (r, g, b, a) for formats stored as quantised RGBA.
_PACKED_BITS = {
    F.RGB16: (5, 6, 5, 0),
    F.ARGB8565_PREMULTIPLIED: (5, 6, 5, 8),
    F.RGB666: (6, 6, 6, 0),
    F.ARGB6666_PREMULTIPLIED: (6, 6, 6, 6),
    F.RGB555: (5, 5, 5, 0),
    F.ARGB8555_PREMULTIPLIED: (5, 5, 5, 8),
    F.RGB444: (4, 4, 4, 0),
    F.ARGB4444_PREMULTIPLIED: (4, 4, 4, 4),
    F.BGR30: (8, 8, 8, 0),
    F.A2BGR30_PREMULTIPLIED: (8, 8, 8, 2),
    F.RGB30: (8, 8, 8, 0),
    F.A2RGB30_PREMULTIPLIED: (8, 8, 8, 2),
}

_OPAQUE_FORMATS = frozenset(
    {F.RGB32, F.RGBX8888} | {fmt for fmt, bits in _PACKED_BITS.items() if bits[3] == 0}
)

if sys.byteorder == "little":
    _RGB32_ORDER = ColorOrder.BGRA
    _RGB32_LAYOUT = "BGRA"
else:
    _RGB32_ORDER = ColorOrder.ARGB
    _RGB32_LAYOUT = "ARGB"

_DEPTHS = (np.dtype(np.uint8), np.dtype(np.uint16), np.dtype(np.float32))

_BLACK = 0xFF000000
_WHITE = 0xFFFFFFFF


def _pack_argb(r: int, g: int, b: int, a: int) -> int:
    return (a << 24) | (r << 16) | (g << 8) | b


_GRAY_TABLE = tuple(_pack_argb(i, i, i, 255) for i in range(256))


def _table_rgba(table) -> np.ndarray:
    rows = [((c >> 16) & 0xFF, (c >> 8) & 0xFF, c & 0xFF, (c >> 24) & 0xFF) for c in table]
    return np.array(rows, dtype=np.uint8).reshape(-1, 4)


def _reorder(mat: np.ndarray, src: str, dst: str) -> np.ndarray:
    return mat[..., [src.index(name) for name in dst]]


def _layout4(order: ColorOrder) -> str:
    return {ColorOrder.BGRA: "BGRA", ColorOrder.RGBA: "RGBA", ColorOrder.ARGB: "ARGB"}[order]


def _channels(mat: np.ndarray) -> int:
    if mat.ndim == 2:
        return 1
    if mat.ndim == 3:
        return mat.shape[2]
    raise ValueError(f"a mat must have 2 or 3 dimensions, not {mat.ndim}")


def _empty_mat() -> np.ndarray:
    return np.empty((0, 0), dtype=np.uint8)


def _qgray(rgba: np.ndarray) -> np.ndarray:
    c = rgba.astype(np.int32)
    return ((c[..., 0] * 11 + c[..., 1] * 16 + c[..., 2] * 5) // 32).astype(np.uint8)


def _mat_gray(mat: np.ndarray, layout: str) -> np.ndarray:
    r = mat[..., layout.index("R")].astype(np.float64)
    g = mat[..., layout.index("G")].astype(np.float64)
    b = mat[..., layout.index("B")].astype(np.float64)
    gray = np.rint(0.299 * r + 0.587 * g + 0.114 * b)
    return np.clip(gray, 0, 255).astype(np.uint8)


def _premultiply(rgba: np.ndarray) -> np.ndarray:
    out = rgba.astype(np.uint32)
    alpha = out[..., 3:4]
    out[..., :3] = (out[..., :3] * alpha + 127) // 255
    return out.astype(np.uint8)


def _unpremultiply(rgba: np.ndarray) -> np.ndarray:
    out = rgba.astype(np.uint32)
    alpha = out[..., 3:4]
    safe = np.maximum(alpha, 1)
    colour = np.minimum((out[..., :3] * 255 + safe // 2) // safe, 255)
    out[..., :3] = np.where(alpha == 0, 0, colour)
    return out.astype(np.uint8)


def _quantize(channel: np.ndarray, bits: int) -> np.ndarray:
    if bits >= 8:
        return channel
    levels = (1 << bits) - 1
    steps = np.rint(channel.astype(np.float64) * levels / 255)
    return np.rint(steps * 255 / levels).astype(np.uint8)


def _nearest_indices(rgba: np.ndarray, table) -> np.ndarray:
    lut = _table_rgba(table).astype(np.int32)
    flat = rgba.reshape(-1, 4)
    unique, inverse = np.unique(flat, axis=0, return_inverse=True)
    diff = unique[:, None, :].astype(np.int32) - lut[None, :, :]
    nearest = (diff * diff).sum(axis=2).argmin(axis=1).astype(np.uint8)
    return nearest[inverse.reshape(-1)].reshape(rgba.shape[:2])


def _decode(fmt: ImageFormat, data: np.ndarray, table) -> np.ndarray:
    """Return the pixels of ``data`` as non-premultiplied RGBA."""
    if fmt in _INDEXED_FORMATS:
        lut = _table_rgba(table)
        if not len(lut):
            return np.zeros(data.shape[:2] + (4,), dtype=np.uint8)
        return lut[np.minimum(data, len(lut) - 1)]
    opaque = np.full(data.shape[:2], 255, dtype=np.uint8)
    if fmt is F.GRAYSCALE8:
        rgba = np.stack([data, data, data, opaque], axis=-1)
    elif fmt is F.ALPHA8:
        zeros = np.zeros_like(data)
        rgba = np.stack([zeros, zeros, zeros, data], axis=-1)
    elif fmt is F.RGB888:
        rgba = np.concatenate([data, opaque[..., None]], axis=-1)
    elif fmt in _RGB32_FORMATS:
        rgba = _reorder(data, _RGB32_LAYOUT, "RGBA")
    else:
        rgba = data.copy()
    if fmt in _OPAQUE_FORMATS:
        rgba[..., 3] = 255
    if fmt in _PREMULTIPLIED:
        rgba = _unpremultiply(rgba)
    return rgba


def _encode(fmt: ImageFormat, rgba: np.ndarray, table=None) -> tuple[np.ndarray, list[int]]:
    """Encode non-premultiplied RGBA pixels into ``fmt``; return data and colour table."""
    if fmt in _INDEXED_FORMATS:
        if table:
            return _nearest_indices(rgba, table), list(table)
        if fmt is not F.INDEXED8:
            table = [_BLACK, _WHITE]
            return _nearest_indices(rgba, table), table
        unique, inverse = np.unique(rgba.reshape(-1, 4), axis=0, return_inverse=True)
        if len(unique) <= 256:
            table = [_pack_argb(int(r), int(g), int(b), int(a)) for r, g, b, a in unique]
            return inverse.reshape(-1).astype(np.uint8).reshape(rgba.shape[:2]), table
        return _qgray(rgba), list(_GRAY_TABLE)
    if fmt is F.GRAYSCALE8:
        return _qgray(rgba), []
    if fmt is F.ALPHA8:
        return rgba[..., 3].copy(), []
    if fmt is F.RGB888:
        return np.ascontiguousarray(rgba[..., :3]), []
    out = rgba.copy()
    if fmt in _OPAQUE_FORMATS:
        out[..., 3] = 255
    if fmt in _PREMULTIPLIED:
        out = _premultiply(out)
    if fmt in _PACKED_BITS:
        for channel, bits in enumerate(_PACKED_BITS[fmt]):
            if bits:
                out[..., channel] = _quantize(out[..., channel], bits)
    if fmt in _RGB32_FORMATS:
        out = _reorder(out, "RGBA", _RGB32_LAYOUT)
    return np.ascontiguousarray(out), []


def _storage_shape(fmt: ImageFormat, width: int, height: int) -> tuple[int, ...]:
    if fmt in _INDEXED_FORMATS or fmt in (F.ALPHA8, F.GRAYSCALE8):
        return (height, width)
    if fmt is F.RGB888:
        return (height, width, 3)
    return (height, width, 4)


@dataclass(eq=False)
class Image:
    """A raster image: pixel data in the layout of its format plus a colour table."""

    format: ImageFormat = ImageFormat.INVALID
    data: np.ndarray | None = None
    color_table: list[int] = field(default_factory=list)

    @property
    def width(self) -> int:
        return 0 if self.data is None else self.data.shape[1]

    @property
    def height(self) -> int:
        return 0 if self.data is None else self.data.shape[0]

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    def is_null(self) -> bool:
        return self.data is None or self.data.size == 0

    def copy(self) -> Image:
        data = None if self.data is None else self.data.copy()
        return Image(self.format, data, list(self.color_table))

    def convert_to_format(self, fmt) -> Image:
        """Return a copy of the image in ``fmt``; a null image for a null source."""
        fmt = ImageFormat(fmt)
        if self.is_null() or fmt is F.INVALID:
            return Image()
        if fmt == self.format:
            return self.copy()
        if fmt in _INDEXED_FORMATS and self.format in _INDEXED_FORMATS:
            return Image(fmt, self.data.copy(), list(self.color_table))
        data, table = _encode(fmt, _decode(self.format, self.data, self.color_table))
        return Image(fmt, data, table)

    def pixel(self, x: int, y: int) -> int:
        """Return the colour at (x, y) as a 0xAARRGGBB integer."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) is outside a {self.width}x{self.height} image")
        r, g, b, a = _decode(self.format, self.data[y : y + 1, x : x + 1], self.color_table)[0, 0]
        return _pack_argb(int(r), int(g), int(b), int(a))

    def fill(self, rgb: int) -> None:
        """Set every pixel to the 0xAARRGGBB colour ``rgb``."""
        self.fill_rect(0, 0, self.width, self.height, rgb)

    def fill_rect(self, x: int, y: int, width: int, height: int, rgb: int) -> None:
        """Set the pixels of a rectangle, clipped to the image, to ``rgb``."""
        if self.is_null():
            return
        x0, y0 = max(x, 0), max(y, 0)
        x1, y1 = min(x + width, self.width), min(y + height, self.height)
        if x0 >= x1 or y0 >= y1:
            return
        r, g, b, a = (rgb >> 16) & 0xFF, (rgb >> 8) & 0xFF, rgb & 0xFF, (rgb >> 24) & 0xFF
        colour = np.array([[[r, g, b, a]]], dtype=np.uint8)
        encoded, table = _encode(self.format, colour, self.color_table or None)
        if self.format in _INDEXED_FORMATS:
            self.color_table = table
        self.data[y0:y1, x0:x1] = encoded[0, 0]


def new_image(width: int, height: int, fmt) -> Image:
    """Create a zero-filled image; non-positive sizes or INVALID give a null image."""
    fmt = ImageFormat(fmt)
    if width <= 0 or height <= 0 or fmt is F.INVALID:
        return Image()
    data = np.zeros(_storage_shape(fmt, width, height), dtype=np.uint8)
    if fmt is F.INDEXED8:
        table = list(_GRAY_TABLE)
    elif fmt in _INDEXED_FORMATS:
        table = [_BLACK, _WHITE]
    else:
        table = []
    return Image(fmt, data, table)


def find_closest_format(fmt) -> ImageFormat:
    """Return the format closest to ``fmt`` that maps directly onto a mat."""
    fmt = ImageFormat(fmt)
    if fmt in _SINGLE_CHANNEL_FORMATS or fmt in _FOUR_CHANNEL_FORMATS or fmt is F.RGB888:
        return fmt
    if fmt in (F.MONO, F.MONO_LSB):
        return F.INDEXED8
    if fmt is F.RGB16:
        return F.RGB32
    if fmt in (F.RGB444, F.RGB555, F.RGB666):
        return F.RGB888
    if fmt in (
        F.ARGB4444_PREMULTIPLIED,
        F.ARGB6666_PREMULTIPLIED,
        F.ARGB8555_PREMULTIPLIED,
        F.ARGB8565_PREMULTIPLIED,
    ):
        return F.ARGB32_PREMULTIPLIED
    return F.ARGB32


def image_to_mat(img: Image, dtype=np.uint8, channels: int = 0, order=ColorOrder.BGR) -> np.ndarray:
    """Copy an image into a mat of ``dtype`` with ``channels`` (0 keeps the image's own)."""
    dtype = np.dtype(dtype)
    order = ColorOrder(order)
    if channels not in (0, 1, 3, 4):
        raise ValueError(f"unsupported channel count: {channels}")
    if dtype not in _DEPTHS:
        raise ValueError(f"unsupported mat depth: {dtype}")
    if img.is_null():
        return _empty_mat()

    fmt = find_closest_format(img.format)
    image = img if fmt == img.format else img.convert_to_format(fmt)
    mat0, src_order = image_to_mat_shared(image)
    have = _channels(mat0)
    target = have if channels == 0 else channels

    adjusted = None
    if target == 1:
        if have == 3:
            adjusted = _mat_gray(mat0, "RGB")
        elif have == 4:
            adjusted = _mat_gray(mat0, _layout4(src_order))
    elif target == 3:
        if have == 1:
            adjusted = np.repeat(mat0[..., None], 3, axis=-1)
        elif have == 3:
            if order != src_order:
                adjusted = mat0[..., ::-1].copy()
        elif have == 4:
            adjusted = _reorder(mat0, _layout4(src_order), "BGR" if order == ColorOrder.BGR else "RGB")
    elif target == 4:
        alpha = np.full(mat0.shape[:2], 255, dtype=np.uint8)
        if have == 1:
            if order == ColorOrder.ARGB:
                adjusted = np.stack([alpha, mat0, mat0, mat0], axis=-1)
            else:
                adjusted = np.stack([mat0, mat0, mat0, alpha], axis=-1)
        elif have == 3:
            rgba = np.concatenate([mat0, alpha[..., None]], axis=-1)
            adjusted = _reorder(rgba, "RGBA", _layout4(order))
        elif have == 4 and src_order != order:
            adjusted = _reorder(mat0, _layout4(src_order), _layout4(order))

    if dtype == np.uint8:
        return mat0.copy() if adjusted is None else adjusted
    source = (mat0 if adjusted is None else adjusted).astype(np.float64)
    if dtype == np.uint16:
        return np.clip(np.rint(source * 255.0), 0, 65535).astype(np.uint16)
    return (source / 255.0).astype(np.float32)


def mat_to_image(mat, order=ColorOrder.BGR, format_hint=ImageFormat.INVALID) -> Image:
    """Copy a mat whose channels are in ``order`` into an image, honouring ``format_hint``."""
    mat = np.asarray(mat)
    order = ColorOrder(order)
    format_hint = ImageFormat(format_hint)
    channels = _channels(mat)
    if channels not in (1, 3, 4):
        raise ValueError(f"unsupported channel count: {channels}")
    if mat.dtype not in _DEPTHS:
        raise ValueError(f"unsupported mat depth: {mat.dtype}")
    if mat.size == 0:
        return Image()

    if channels == 1:
        adjusted = mat.reshape(mat.shape[:2])
        fmt = format_hint if format_hint in _SINGLE_CHANNEL_FORMATS else F.INDEXED8
    elif channels == 3:
        fmt = F.RGB888
        adjusted = mat[..., ::-1] if order == ColorOrder.BGR else mat
    else:
        fmt = find_closest_format(format_hint)
        if fmt not in _FOUR_CHANNEL_FORMATS:
            fmt = F.RGBA8888 if order == ColorOrder.RGBA else F.ARGB32
        required = ColorOrder.RGBA if format_hint in _RGBA8888_FORMATS else _RGB32_ORDER
        adjusted = mat if order == required else _reorder(mat, _layout4(order), _layout4(required))

    if mat.dtype != np.uint8:
        scale = 1 / 255.0 if mat.dtype == np.uint16 else 255.0
        adjusted = np.clip(np.rint(adjusted.astype(np.float64) * scale), 0, 255).astype(np.uint8)

    image = mat_to_image_shared(np.ascontiguousarray(adjusted), fmt)
    if fmt == format_hint or format_hint is F.INVALID:
        return image.copy()
    return image.convert_to_format(format_hint)


def image_to_mat_shared(img: Image) -> tuple[np.ndarray, ColorOrder | None]:
    """Return the image's pixel data as a mat without copying, and its channel order.

    The order is None for single-channel images.  Formats without a direct
    mat layout give an empty mat.
    """
    if img.is_null():
        return _empty_mat(), None
    fmt = img.format
    if fmt in _SINGLE_CHANNEL_FORMATS:
        order = None
    elif fmt is F.RGB888:
        order = ColorOrder.RGB
    elif fmt in _RGB32_FORMATS:
        order = _RGB32_ORDER
    elif fmt in _RGBA8888_FORMATS:
        order = ColorOrder.RGBA
    else:
        return _empty_mat(), None
    return img.data, order


def mat_to_image_shared(mat, format_hint=ImageFormat.INVALID) -> Image:
    """Wrap an 8-bit mat in an image without copying its data."""
    mat = np.asarray(mat)
    format_hint = ImageFormat(format_hint)
    channels = _channels(mat)
    if mat.dtype != np.uint8 or channels not in (1, 3, 4):
        raise ValueError(f"mat must be 8-bit with 1, 3 or 4 channels, not {mat.dtype} x{channels}")
    if mat.size == 0:
        return Image()
    data = mat
    if channels == 1:
        data = mat.reshape(mat.shape[:2])
        fmt = format_hint if format_hint in _SINGLE_CHANNEL_FORMATS else F.INDEXED8
    elif channels == 3:
        fmt = F.RGB888
    else:
        fmt = format_hint if format_hint in _FOUR_CHANNEL_FORMATS else F.ARGB32
    table = list(_GRAY_TABLE) if fmt is F.INDEXED8 else []
    return Image(fmt, data, table)