import pytest

from vidmeasure.imageconv import ImageFormat, new_image
from vidmeasure.middleware import FrameMiddleware


class _Invert(FrameMiddleware):
    def process_frame(self, img):
        out = img.copy()
        out.data = 255 - out.data
        return out


def test_base_class_cannot_be_instantiated():
    with pytest.raises(TypeError):
        FrameMiddleware()


def test_subclass_processes_frame():
    img = new_image(4, 3, ImageFormat.GRAYSCALE8)
    out = _Invert().process_frame(img)
    assert out.size == (4, 3)
    assert (out.data == 255).all()
    assert (img.data == 0).all()


def test_subclass_is_a_middleware_and_chains():
    middleware = _Invert()
    assert isinstance(middleware, FrameMiddleware)
    img = new_image(2, 2, ImageFormat.GRAYSCALE8)
    twice = middleware.process_frame(middleware.process_frame(img))
    assert twice.size == (2, 2)
    assert (twice.data == 0).all()