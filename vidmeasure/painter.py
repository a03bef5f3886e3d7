"""Interactive drawing of measured lines and circles on a scene."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum, Flag, auto
from typing import Callable, Optional, Union

PX_DISPLAY_PRECISION = 0
UNITS_DISPLAY_PRECISION = 2
TEXT_OFFSET_HOR_PX = 5
TEXT_OFFSET_VERT_PX = 5

FONT_FAMILY = "Arial"
LINE_COLOR = "red"
CIRCLE_COLOR = "blue"


class DrawMode(Enum):
    """What a press-drag-release on the scene draws."""

    NONE = 0
    LINE = 1
    CIRCLE = 2


class MouseButton(Enum):
    NONE = 0
    LEFT = 1
    RIGHT = 2
    MIDDLE = 3


class Modifier(Flag):
    NONE = 0
    SHIFT = auto()
    CONTROL = auto()
    ALT = auto()


@dataclass(frozen=True)
class Point:
    x: float = 0.0
    y: float = 0.0

    def distance_to(self, other: Point) -> float:
        return math.hypot(other.x - self.x, other.y - self.y)


@dataclass(frozen=True)
class MouseEvent:
    """A mouse event at a position in view coordinates."""

    pos: Point
    button: MouseButton = MouseButton.NONE
    modifiers: Modifier = Modifier.NONE


@dataclass(eq=False)
class LineItem:
    x1: float
    y1: float
    x2: float
    y2: float
    color: str = LINE_COLOR
    width: int = 1
    dashed: bool = False


@dataclass(eq=False)
class EllipseItem:
    x: float
    y: float
    width: float
    height: float
    color: str = CIRCLE_COLOR
    pen_width: int = 1
    dashed: bool = False


@dataclass(eq=False)
class TextItem:
    text: str
    font_family: str = FONT_FAMILY
    font_size: int = 10
    color: str = "black"
    pos: Point = field(default_factory=Point)


Item = Union[LineItem, EllipseItem, TextItem]


def _view_to_scene(point: Point) -> Point:
    """Map an untransformed view position to scene coordinates as floats."""
    return Point(float(point.x), float(point.y))


@dataclass(eq=False)
class Scene:
    """A collection of items plus the mapping from view to scene coordinates.

    ``map_to_scene`` set to None means no view shows the scene, so mouse
    positions cannot be mapped.
    """

    items: list = field(default_factory=list)
    map_to_scene: Optional[Callable[[Point], Point]] = _view_to_scene
    rect: tuple = (0.0, 0.0, 0.0, 0.0)

    def add_item(self, item: Item) -> None:
        if not any(existing is item for existing in self.items):
            self.items.append(item)

    def remove_item(self, item: Item) -> None:
        self.items = [existing for existing in self.items if existing is not item]

    def set_scene_rect(self, x: float, y: float, width: float, height: float) -> None:
        self.rect = (x, y, width, height)

    def __contains__(self, item: object) -> bool:
        return any(existing is item for existing in self.items)


def _fixed(value: float, precision: int) -> str:
    quantum = Decimal(1).scaleb(-precision)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def _label(prefix: str, px: float, mm: float) -> str:
    return (
        f"{prefix}: {_fixed(px, PX_DISPLAY_PRECISION)} px, "
        f"{_fixed(mm, UNITS_DISPLAY_PRECISION)} mm"
    )


class SurfacePainter:
    """Draws lines and circles on a scene, labelled with lengths in px and mm."""

    def __init__(self, scene: Optional[Scene] = None) -> None:
        self.scene = scene
        self._mode = DrawMode.NONE
        self._start = Point()
        self.temp_item: Optional[Item] = None
        self.temp_text_item: Optional[TextItem] = None
        self.last_item: Optional[Item] = None
        self.last_text_item: Optional[TextItem] = None
        self.painted_items: list = []
        self.painted_texts: list = []
        self._setting_circle_center = False
        self._drawing = False
        self._font_size = 10
        self._line_width = 1
        self._mm_w = 0.001
        self._mm_h = 0.001

    # -- read-only state -------------------------------------------------

    @property
    def draw_mode(self) -> DrawMode:
        return self._mode

    @property
    def start_point(self) -> Point:
        return self._start

    @property
    def is_drawing(self) -> bool:
        return self._drawing

    @property
    def setting_circle_center(self) -> bool:
        return self._setting_circle_center

    @property
    def font_size(self) -> int:
        return self._font_size

    @property
    def line_width(self) -> int:
        return self._line_width

    @property
    def mm_per_pixel_width(self) -> float:
        return self._mm_w

    @property
    def mm_per_pixel_height(self) -> float:
        return self._mm_h

    # -- helpers ---------------------------------------------------------

    def _map(self, event: MouseEvent) -> Optional[Point]:
        if self.scene is None or self.scene.map_to_scene is None:
            return None
        return self.scene.map_to_scene(event.pos)

    def _constrained(self, point: Point, modifiers: Modifier) -> Point:
        if self._mode is DrawMode.LINE:
            if Modifier.CONTROL in modifiers:
                return Point(point.x, self._start.y)
            if Modifier.SHIFT in modifiers:
                return Point(self._start.x, point.y)
        return point

    def _clear_temp(self) -> None:
        if self.scene is None:
            return
        if self.temp_item is not None and self.temp_item in self.scene:
            self.scene.remove_item(self.temp_item)
            self.temp_item = None
        if self.temp_text_item is not None and self.temp_text_item in self.scene:
            self.scene.remove_item(self.temp_text_item)
            self.temp_text_item = None

    def _temp_text(self, color: str) -> TextItem:
        return TextItem("R: 0 px, 0 mm", FONT_FAMILY, self._font_size, color)

    def _circle_rect(self, radius: float) -> tuple:
        return (self._start.x - radius, self._start.y - radius, radius * 2, radius * 2)

    def _line_text_pos(self, end: Point) -> Point:
        return Point(
            max(self._start.x, end.x) + TEXT_OFFSET_HOR_PX,
            min(self._start.y, end.y) - TEXT_OFFSET_VERT_PX,
        )

    def _circle_text_pos(self, radius: float) -> Point:
        return Point(
            self._start.x + radius + TEXT_OFFSET_HOR_PX,
            self._start.y - radius - TEXT_OFFSET_VERT_PX,
        )

    # -- mouse handling --------------------------------------------------

    def handle_mouse_pressed(self, event: MouseEvent) -> None:
        """Start drawing a preview item at the pressed position."""
        if self._mode is DrawMode.NONE or event.button is not MouseButton.LEFT:
            return
        if self.scene is None:
            return
        self._clear_temp()

        mapped = self._map(event)
        if mapped is not None:
            self._start = mapped
        self._drawing = True

        if self._mode is DrawMode.CIRCLE:
            self._setting_circle_center = False
            item: Item = EllipseItem(
                0, 0, 0, 0, CIRCLE_COLOR, self._line_width, dashed=True
            )
            color = CIRCLE_COLOR
        else:
            item = LineItem(
                self._start.x,
                self._start.y,
                self._start.x,
                self._start.y,
                LINE_COLOR,
                self._line_width,
                dashed=True,
            )
            color = LINE_COLOR
        self.scene.add_item(item)
        self.temp_item = item
        self.temp_text_item = self._temp_text(color)
        self.scene.add_item(self.temp_text_item)

    def handle_mouse_moved(self, event: MouseEvent) -> None:
        """Update the preview item and its label to the current position."""
        if self._mode is DrawMode.NONE or not self._drawing:
            return
        if self.scene is None:
            return
        current = self._map(event) or Point()
        current = self._constrained(current, event.modifiers)

        if self._mode is DrawMode.LINE and isinstance(self.temp_item, LineItem):
            line = self.temp_item
            line.x1, line.y1 = self._start.x, self._start.y
            line.x2, line.y2 = current.x, current.y
            if self.temp_text_item is not None:
                text = self.temp_text_item
                text.font_size = self._font_size
                text.text = _label(
                    "L",
                    self._start.distance_to(current),
                    self.line_length_mm(self._start, current),
                )
                text.pos = self._line_text_pos(current)
        elif self._mode is DrawMode.CIRCLE and isinstance(self.temp_item, EllipseItem):
            radius = self._start.distance_to(current)
            circle = self.temp_item
            circle.x, circle.y, circle.width, circle.height = self._circle_rect(radius)
            if self.temp_text_item is not None:
                text = self.temp_text_item
                text.font_size = self._font_size
                text.text = _label(
                    "R", radius, self.circle_radius_mm(self._start, current)
                )
                text.pos = self._circle_text_pos(radius)

    def handle_mouse_released(self, event: MouseEvent) -> None:
        """Replace the preview with a permanent item and its measurement label."""
        if (
            self._mode is DrawMode.NONE
            or not self._drawing
            or event.button is not MouseButton.LEFT
        ):
            return
        if self.scene is None:
            return
        end = self._map(event) or Point()
        end = self._constrained(end, event.modifiers)
        self._clear_temp()

        if self._mode is DrawMode.LINE:
            item: Item = LineItem(
                self._start.x, self._start.y, end.x, end.y, LINE_COLOR, self._line_width
            )
            label = _label(
                "L", self._start.distance_to(end), self.line_length_mm(self._start, end)
            )
            text = TextItem(
                label, FONT_FAMILY, self._font_size, LINE_COLOR, self._line_text_pos(end)
            )
        else:
            radius = self._start.distance_to(end)
            item = EllipseItem(
                *self._circle_rect(radius), CIRCLE_COLOR, self._line_width
            )
            label = _label("R", radius, self.circle_radius_mm(self._start, end))
            text = TextItem(
                label,
                FONT_FAMILY,
                self._font_size,
                CIRCLE_COLOR,
                self._circle_text_pos(radius),
            )
            self._setting_circle_center = True

        self.scene.add_item(item)
        self.last_item = item
        self.painted_items.append(item)
        self.scene.add_item(text)
        self.last_text_item = text
        self.painted_texts.append(text)
        self._drawing = False

    # -- scene and settings ---------------------------------------------

    def clear_scene(self) -> None:
        """Remove every permanent item and label this painter drew."""
        if self.scene is None:
            return
        for item in [*self.painted_items, *self.painted_texts]:
            if item in self.scene:
                self.scene.remove_item(item)
        self.painted_items.clear()
        self.painted_texts.clear()
        self.last_item = None
        self.last_text_item = None

    def set_font_size(self, size: int) -> None:
        self._font_size = min(max(int(size), 1), 60)

    def set_line_width(self, width: int) -> None:
        self._line_width = min(max(int(width), 1), 5)

    def set_mm_per_pixel_width(self, value: float) -> None:
        self._mm_w = 0.001 if value < 0 else float(value)

    def set_mm_per_pixel_height(self, value: float) -> None:
        self._mm_h = 0.001 if value < 0 else float(value)

    def set_draw_mode(self, mode) -> None:
        try:
            self._mode = DrawMode(mode)
        except ValueError:
            self._mode = DrawMode.NONE

    def set_setting_circle_center(self, flag: bool) -> None:
        self._setting_circle_center = bool(flag)

    def circle_radius_mm(self, centre: Point, point: Point) -> float:
        """Radius in millimetres of a circle through ``point`` around ``centre``."""
        dx = (point.x - centre.x) * self._mm_w
        dy = (point.y - centre.y) * self._mm_h
        return math.sqrt(dx * dx + dy * dy)

    def line_length_mm(self, start: Point, end: Point) -> float:
        """Length in millimetres of the segment from ``start`` to ``end``."""
        dx = (start.x - end.x) * self._mm_w
        dy = (start.y - end.y) * self._mm_h
        return math.sqrt(dx * dx + dy * dy)