# vidmeasure

Tools for taking simple measurements on video frames: draw lines and circles
over an image, read off their lengths and radii in pixels and millimetres, and
run an optional Canny edge-detection stage over each frame.

## Installation

```
pip install vidmeasure
```

To run the test suite:

```
pip install "vidmeasure[test]"
pytest
```

## Modules

- `vidmeasure.imageconv`: an `Image` type holding pixel data in one of the
  `ImageFormat` formats, with `new_image`, `Image.copy`,
  `Image.convert_to_format`, `Image.pixel` (returns `0xAARRGGBB`), `Image.fill`
  and `Image.fill_rect`. `image_to_mat` and `mat_to_image` convert to and from
  numpy arrays (`uint8`, `uint16` or `float32`; 1, 3 or 4 channels) in a chosen
  `ColorOrder`. `image_to_mat_shared` and `mat_to_image_shared` do the same
  without copying, and `find_closest_format` picks the format that maps
  directly onto an array.
- `vidmeasure.middleware`: `FrameMiddleware`, the abstract base for frame
  processing stages. `process_frame(img)` returns the frame to pass to the
  next stage.
- `vidmeasure.edgedetector`: `EdgeDetector(thr1=100.0, thr2=200.0)`, a
  middleware that converts a frame to gray, applies a 5x5 Gaussian blur and
  Canny edge detection, and returns the edge map as an 8-bit indexed grayscale
  image. Edge pixels are white and all other pixels are black. A null frame is
  returned unchanged. `gaussian_blur(gray, ksize)` and `canny(gray, thr1, thr2)`
  are also available on their own.
- `vidmeasure.painter`: `SurfacePainter` turns `MouseEvent`s (press, move,
  release) into `LineItem`, `EllipseItem` and `TextItem` objects on a `Scene`.
  The mode is chosen with `set_draw_mode(DrawMode.LINE)` or `DrawMode.CIRCLE`.
  In line mode, holding `Modifier.CONTROL` keeps the line horizontal and
  `Modifier.SHIFT` keeps it vertical. Labels read like `L: 50 px, 5.00 mm` or
  `R: 12 px, 0.01 mm`, scaled by `set_mm_per_pixel_width` and
  `set_mm_per_pixel_height`. The default scale is 0.001 mm per pixel, and
  negative values fall back to that default. Font size is clamped to 1–60 and
  line width to 1–5. `clear_scene` removes everything the painter drew.
- `vidmeasure.frameprovider`: `FrameProvider`, the abstract base for frame
  sources. `start(ready)` runs `run()` on a daemon thread. Implementations hand
  over frames with `publish_frame`. The latest frame is read with `get_frame`,
  which clears `is_ready`. `stop()` joins the thread, and a provider can be used
  as a context manager.
- `vidmeasure.videoview`: `VideoView`, which holds providers, a `Scene` and a
  `SurfacePainter`. The first provider given is the default source. Each call
  to `update_frame()` takes the active provider's new frame, if there is one,
  runs it through the middleware chain and stores it in `current_frame`.
  Further members:
  - `change_video_src` and `change_video_fmt` select the source and its format.
  - `inc_zoom`, `dec_zoom` and `fit` adjust the zoom, from 0.05 to 1.0 in steps
    of 0.05. Fitting uses `viewport_size`.
  - `use_edge_detector` switches the `EdgeDetector` stage on or off.
  - `video_sources_changed` and `video_formats_changed` are signals that take
    callbacks through `connect`.

## Examples

Edge detection:

```python
from vidmeasure.imageconv import ImageFormat, new_image
from vidmeasure.edgedetector import EdgeDetector

img = new_image(100, 100, ImageFormat.RGB32)
img.fill(0xFFFFFFFF)
img.fill_rect(40, 40, 20, 20, 0xFF000000)

edges = EdgeDetector(100.0, 200.0).process_frame(img)
print(edges.format.name, edges.size)  # INDEXED8 (100, 100)
```

Measuring with the painter:

```python
from vidmeasure.painter import (
    DrawMode, MouseButton, MouseEvent, Point, Scene, SurfacePainter,
)

scene = Scene()
painter = SurfacePainter(scene)
painter.set_mm_per_pixel_width(0.1)
painter.set_mm_per_pixel_height(0.1)
painter.set_draw_mode(DrawMode.LINE)

painter.handle_mouse_pressed(MouseEvent(Point(0, 0), MouseButton.LEFT))
painter.handle_mouse_released(MouseEvent(Point(30, 40), MouseButton.LEFT))
print(painter.last_text_item.text)  # L: 50 px, 5.00 mm
```

## What it does not do

- It has no concrete frame sources. `FrameProvider` is only a base class, so
  camera or network-stream capture has to be written as a subclass.
- It has no window, toolbar or rendering. Items on a `Scene` are plain data for
  your own display code.
- Nothing calls `VideoView.update_frame` on a timer. `FRAME_UPDATE_PERIOD_MS`
  (50) is only the suggested interval for a caller's own loop.
- It installs no command-line program.