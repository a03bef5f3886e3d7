import numpy as np
import pytest

from vidmeasure.edgedetector import EdgeDetector, canny, gaussian_blur
from vidmeasure.imageconv import Image, ImageFormat, new_image
from vidmeasure.middleware import FrameMiddleware

WHITE = 0xFFFFFFFF
BLACK = 0xFF000000


@pytest.fixture
def detector():
    return EdgeDetector(100, 200)


def _has_colour(img):
    return any(
        img.pixel(x, y) & 0x00FFFFFF
        for y in range(img.height)
        for x in range(img.width)
    )


def test_is_middleware(detector):
    assert isinstance(detector, FrameMiddleware)
    assert (detector.thr1, detector.thr2) == (100, 200)


def test_default_thresholds():
    d = EdgeDetector()
    assert (d.thr1, d.thr2) == (100.0, 200.0)


def test_null_image(detector):
    img = Image()
    assert img.is_null()
    out = detector.process_frame(img)
    assert out.is_null()


def test_invalid_format(detector):
    img = new_image(100, 100, ImageFormat.MONO)
    img.fill(BLACK)
    out = detector.process_frame(img)
    assert out.format != ImageFormat.RGB32
    assert not out.is_null()
    assert out.size == (100, 100)


def test_valid_rgb32_image_is_modified(detector):
    img = new_image(100, 100, ImageFormat.RGB32)
    img.fill(WHITE)
    original = img.copy()
    out = detector.process_frame(img)
    assert not out.is_null()
    assert out.size == (100, 100)
    differs = any(
        out.pixel(x, y) != original.pixel(x, y)
        for y in range(out.height)
        for x in range(out.width)
    )
    assert differs


def test_empty_image(detector):
    img = new_image(0, 0, ImageFormat.RGB32)
    assert img.is_null()
    assert detector.process_frame(img).is_null()


def test_edge_detection_output(detector):
    img = new_image(100, 100, ImageFormat.RGB32)
    img.fill(WHITE)
    img.fill_rect(40, 40, 20, 20, BLACK)
    out = detector.process_frame(img)
    assert not out.is_null()
    assert _has_colour(out)
    # Far from the square nothing is an edge.
    assert out.pixel(5, 5) == BLACK
    assert out.pixel(50, 50) == BLACK


def test_output_is_binary(detector):
    img = new_image(60, 60, ImageFormat.ARGB32)
    img.fill(WHITE)
    img.fill_rect(10, 10, 30, 30, BLACK)
    out = detector.process_frame(img)
    values = {out.pixel(x, y) for y in range(out.height) for x in range(out.width)}
    assert values <= {BLACK, WHITE}
    assert WHITE in values


def test_gaussian_blur_constant_unchanged():
    gray = np.full((10, 12), 77, dtype=np.uint8)
    out = gaussian_blur(gray, 5)
    assert out.dtype == np.uint8
    assert out.shape == gray.shape
    assert (out == 77).all()


def test_gaussian_blur_ksize_one_is_identity():
    gray = np.arange(30, dtype=np.uint8).reshape(5, 6)
    assert np.array_equal(gaussian_blur(gray, 1), gray)


def test_gaussian_blur_symmetric_impulse():
    gray = np.zeros((11, 11), dtype=np.uint8)
    gray[5, 5] = 255
    out = gaussian_blur(gray, 5)
    assert np.array_equal(out, out.T)
    assert np.array_equal(out, out[::-1, ::-1])
    assert out[5, 5] == out.max()
    assert out[5, 5] < 255


def test_gaussian_blur_large_kernel_preserves_mean():
    rng = np.random.default_rng(0)
    gray = rng.random((20, 20)).astype(np.float32)
    out = gaussian_blur(gray, 9)
    assert out.dtype == np.float32
    assert out.min() >= gray.min() - 1e-6
    assert out.max() <= gray.max() + 1e-6


@pytest.mark.parametrize("ksize", [0, 2, 4, -3])
def test_gaussian_blur_rejects_bad_ksize(ksize):
    with pytest.raises(ValueError):
        gaussian_blur(np.zeros((5, 5), dtype=np.uint8), ksize)


def test_canny_uniform_has_no_edges():
    gray = np.full((15, 15), 200, dtype=np.uint8)
    assert not canny(gray, 100, 200).any()


def test_canny_step_edge():
    gray = np.zeros((20, 20), dtype=np.uint8)
    gray[:, 10:] = 255
    edges = canny(gray, 100, 200)
    assert set(np.unique(edges)) <= {0, 255}
    assert edges.any()
    assert not edges[:, :8].any()
    assert not edges[:, 12:].any()


def test_canny_threshold_order_does_not_matter():
    rng = np.random.default_rng(1)
    gray = gaussian_blur(rng.integers(0, 256, (30, 30), dtype=np.uint8), 5)
    assert np.array_equal(canny(gray, 50, 150), canny(gray, 150, 50))


def test_canny_higher_thresholds_give_fewer_edges():
    rng = np.random.default_rng(2)
    gray = gaussian_blur(rng.integers(0, 256, (30, 30), dtype=np.uint8), 5)
    loose = canny(gray, 20, 60) > 0
    strict = canny(gray, 200, 400) > 0
    assert strict.sum() <= loose.sum()


def test_canny_rejects_non_8bit():
    with pytest.raises(ValueError):
        canny(np.zeros((5, 5), dtype=np.float32), 100, 200)


def test_canny_rejects_multichannel():
    with pytest.raises(ValueError):
        canny(np.zeros((5, 5, 3), dtype=np.uint8), 100, 200)