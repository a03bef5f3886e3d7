import threading

import pytest

from vidmeasure.edgedetector import EdgeDetector
from vidmeasure.frameprovider import FrameProvider
from vidmeasure.imageconv import Image, ImageFormat, new_image
from vidmeasure.middleware import FrameMiddleware
from vidmeasure.videoview import VideoView


class FakeProvider(FrameProvider):
    def __init__(self, descs, formats):
        super().__init__()
        self.descs = list(descs)
        self.formats = list(formats)
        self.selected_device = None
        self.selected_format = None
        self.done = threading.Event()

    def device_descriptions(self):
        return list(self.descs)

    def set_device(self, desc):
        self.selected_device = desc

    def available_formats(self):
        return list(self.formats)

    def set_format(self, idx):
        self.selected_format = idx

    def set_url(self, url):
        self.descs = [url]

    def run(self):
        self._notify_ready()
        self.done.set()


class Tagger(FrameMiddleware):
    def __init__(self):
        self.seen = []

    def process_frame(self, img):
        self.seen.append(img)
        return img


@pytest.fixture
def camera():
    return FakeProvider(["camera A", "camera B"], ["640,480", "1280,720", "320,240"])


@pytest.fixture
def view(camera):
    v = VideoView([camera])
    assert camera.done.wait(2)
    yield v
    v.close()


def test_default_provider_fills_sources_and_formats(view, camera):
    assert view.video_sources == camera.descs
    assert view.video_formats == camera.formats
    assert camera.is_running


def test_add_source_appends_descriptions(view):
    stream = FakeProvider([], [])
    stream.set_url("rtsp://localhost/stream")
    emitted = []
    view.video_sources_changed.connect(emitted.append)
    view.add_source(stream)
    assert stream.done.wait(2)
    assert view.video_sources[-1] == "rtsp://localhost/stream"
    assert emitted[-1] == view.video_sources
    assert view.providers[-1] is stream


def test_change_video_src_switches_provider(view):
    stream = FakeProvider(["rtsp://localhost/stream"], ["800,600"])
    view.add_source(stream)
    assert stream.done.wait(2)
    formats = []
    view.video_formats_changed.connect(formats.append)
    view.change_video_src("rtsp://localhost/stream")
    assert view.current_index == 1
    assert stream.selected_device == "rtsp://localhost/stream"
    assert formats == [["800,600"]]


def test_change_video_src_unknown_keeps_index(view):
    view.change_video_src("missing")
    assert view.current_index == 0


def test_change_video_fmt_goes_to_active_provider(view, camera):
    stream = FakeProvider(["rtsp://localhost/stream"], ["800,600"])
    view.add_source(stream)
    assert stream.done.wait(2)
    view.change_video_src("rtsp://localhost/stream")
    view.change_video_fmt(2)
    assert view.current_index == 1
    assert view.providers[view.current_index].selected_format == 2
    assert view.providers[0].selected_format is None


def test_update_frame_without_new_frame(view):
    assert view.update_frame() is False
    assert view.current_frame.is_null()


def test_update_frame_runs_middleware_and_sizes_scene(view, camera):
    tagger = Tagger()
    view.add_middleware(tagger)
    frame = new_image(3000, 10, ImageFormat.RGB32)
    camera.publish_frame(frame)
    assert view.update_frame() is True
    assert view.current_frame is frame
    assert tagger.seen == [frame]
    assert view.scene.rect == (0, 0, 3000, 10)
    assert view.painter.font_size == 60
    assert view.painter.line_width == 5
    assert not camera.is_ready


def test_update_frame_small_image_clamps_painter(view, camera):
    camera.publish_frame(new_image(30, 30, ImageFormat.RGB32))
    view.update_frame()
    assert view.painter.font_size == 1
    assert view.painter.line_width == 1


def test_zoom_limits(view):
    assert view.zoom_factor == pytest.approx(0.5)
    for _ in range(20):
        view.inc_zoom()
    assert view.zoom_factor == pytest.approx(1.0)
    for _ in range(40):
        view.dec_zoom()
    assert view.zoom_factor == pytest.approx(0.05)


def test_zoom_step_round_trip(view):
    view.inc_zoom()
    view.dec_zoom()
    assert view.zoom_factor == pytest.approx(0.5)


def test_fit_uses_viewport(view, camera):
    camera.publish_frame(new_image(300, 200, ImageFormat.RGB32))
    view.update_frame()
    view.viewport_size = (600, 400)
    view.fit()
    assert view.zoom_factor == 1.0
    assert view.scene.rect == (0, 0, 300, 200)
    assert view.transform_scale == pytest.approx(600 / 300)


def test_use_edge_detector_adds_once_and_removes(view):
    view.use_edge_detector(True)
    view.use_edge_detector(True)
    assert sum(isinstance(mw, EdgeDetector) for mw in view.middlewares) == 1
    view.use_edge_detector(False)
    assert not view.has_middleware(EdgeDetector)


def test_remove_middleware_only_removes_kind(view):
    view.add_middleware(Tagger())
    view.use_edge_detector(True)
    view.remove_middleware(Tagger)
    assert not view.has_middleware(Tagger)
    assert view.has_middleware(EdgeDetector)


def test_edge_detector_in_pipeline(view, camera):
    img = new_image(100, 100, ImageFormat.RGB32)
    img.fill(0xFFFFFFFF)
    img.fill_rect(40, 40, 20, 20, 0xFF000000)
    camera.publish_frame(img)
    view.use_edge_detector(True)
    assert view.update_frame()
    out = view.current_frame
    assert out.format is ImageFormat.INDEXED8
    assert out.size == (100, 100)
    assert any(out.pixel(x, 40) & 0xFFFFFF for x in range(100)) or any(
        out.pixel(40, y) & 0xFFFFFF for y in range(100)
    )


def test_view_without_providers():
    v = VideoView()
    assert v.update_frame() is False
    assert v.video_sources == []
    assert isinstance(v.current_frame, Image) and v.current_frame.is_null()