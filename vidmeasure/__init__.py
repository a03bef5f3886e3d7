"""Image conversion, edge detection, measurement drawing and frame handling for video images."""

__version__ = "0.1.0"

__all__ = [
    "imageconv",
    "middleware",
    "edgedetector",
    "painter",
    "frameprovider",
    "videoview",
]