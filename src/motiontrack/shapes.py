"""
Motion Tracking Shapes - Trackable Annotation Geometry

Annotations are stored in ABSOLUTE frame coordinates and carry an anchor
(x, y), the point the tracker follows. Tracking only ever translates
them rigidly:

┌──────────────────────────────────────────────────────────────────┐
│                        ANNOTATION TYPES                          │
├──────────────────────────────────────────────────────────────────┤
│   Annotation (id, color, tracking_enabled, tracking_status, x, y)│
│          │                                                       │
│   ┌──────┼──────────────┬──────────────────┐                     │
│   ▼                     ▼                  ▼                     │
│ PathAnnotation   RectangleAnnotation   CircleAnnotation          │
│ (points)         (width, height)       (radius)                  │
│                                                                  │
│ translated(dx, dy) → new annotation, shape preserved             │
└──────────────────────────────────────────────────────────────────┘

The anchor of a path is its FIRST point at creation time; it is never
recomputed from the path's centroid.
"""

import math
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import ClassVar, Hashable, List, Optional, Tuple


Point = Tuple[float, float]


class TrackingStatus(Enum):
    """Displayable tracking status of an annotation."""
    ACTIVE = "active"          # Following the structure
    UNCERTAIN = "uncertain"    # Weak match, held in place
    LOST = "lost"              # Too many weak matches in a row


@dataclass
class Annotation(ABC):
    """
    Base of the annotation sum type.

    Attributes:
        id: Unique, immutable identifier
        color: BGR color tuple
        tracking_enabled: Whether the engine moves this annotation
        tracking_status: Last computed status
        x, y: Anchor position in frame coordinates
    """
    kind: ClassVar[str] = ""

    id: Hashable
    x: float = 0.0
    y: float = 0.0
    color: Tuple[int, int, int] = (0, 0, 255)  # Red
    tracking_enabled: bool = True
    tracking_status: TrackingStatus = TrackingStatus.ACTIVE

    @property
    def anchor(self) -> Point:
        return (self.x, self.y)

    @abstractmethod
    def translated(self, dx: float, dy: float) -> "Annotation":
        """Return a copy moved rigidly by (dx, dy)."""
        pass

    def moved_to(self, x: float, y: float) -> "Annotation":
        """Return a copy whose anchor is at (x, y)."""
        return self.translated(x - self.x, y - self.y)

    def with_status(self, status: TrackingStatus) -> "Annotation":
        return replace(self, tracking_status=status)


@dataclass
class PathAnnotation(Annotation):
    """
    Freehand stroke.

    Points are kept in drawing order; the anchor is the first point
    captured when the stroke was started.
    """
    kind: ClassVar[str] = "path"

    points: List[Point] = field(default_factory=list)

    def __post_init__(self):
        if not self.points:
            raise ValueError(f"Path annotation {self.id!r} needs at least one point")
        self.points = [(float(px), float(py)) for px, py in self.points]

    @classmethod
    def start(cls, x: float, y: float, annotation_id: Optional[Hashable] = None, **kwargs) -> "PathAnnotation":
        """Begin a stroke at (x, y); the anchor is fixed there."""
        return cls(
            id=annotation_id if annotation_id is not None else new_annotation_id(),
            x=float(x),
            y=float(y),
            points=[(float(x), float(y))],
            **kwargs
        )

    def add_point(self, x: float, y: float):
        """Append a point to the stroke (anchor unchanged)."""
        self.points.append((float(x), float(y)))

    def translated(self, dx: float, dy: float) -> "PathAnnotation":
        return replace(
            self,
            x=self.x + dx,
            y=self.y + dy,
            points=[(px + dx, py + dy) for px, py in self.points]
        )


@dataclass
class RectangleAnnotation(Annotation):
    """
    Box from the anchor corner.

    Width and height are signed: dragging up/left while drawing gives
    negative values. They are only normalized when rendering.
    """
    kind: ClassVar[str] = "rectangle"

    width: float = 0.0
    height: float = 0.0

    def translated(self, dx: float, dy: float) -> "RectangleAnnotation":
        return replace(self, x=self.x + dx, y=self.y + dy)

    def normalized_bounds(self) -> Tuple[float, float, float, float]:
        """(left, top, right, bottom) with positive extent."""
        x1, x2 = sorted((self.x, self.x + self.width))
        y1, y2 = sorted((self.y, self.y + self.height))
        return (x1, y1, x2, y2)


@dataclass
class CircleAnnotation(Annotation):
    """Circle centered on the anchor."""
    kind: ClassVar[str] = "circle"

    radius: float = 0.0

    def translated(self, dx: float, dy: float) -> "CircleAnnotation":
        return replace(self, x=self.x + dx, y=self.y + dy)


def new_annotation_id() -> str:
    return str(uuid.uuid4())[:8]


# ============================================================================
# DRAWING - State machine for interactive annotation creation
# ============================================================================

class DrawingTool(Enum):
    """Available drawing tools."""
    PEN = "pen"
    RECTANGLE = "rectangle"
    CIRCLE = "circle"


class AnnotationDrawer:
    """
    State machine for interactive annotation drawing.

    Usage:
        drawer = AnnotationDrawer()
        drawer.set_tool(DrawingTool.RECTANGLE)

        # In mouse callback:
        if event == cv2.EVENT_LBUTTONDOWN:
            drawer.start_drawing(x, y)
        elif event == cv2.EVENT_MOUSEMOVE and drawer.is_drawing:
            drawer.update_drawing(x, y)
        elif event == cv2.EVENT_LBUTTONUP:
            annotation = drawer.finish_drawing()
            if annotation:
                session.add_annotation(annotation, frame)
    """

    def __init__(self, tool: DrawingTool = DrawingTool.PEN):
        self.tool = tool
        self.color: Tuple[int, int, int] = (0, 0, 255)
        self.tracking_enabled = True

        self._current: Optional[Annotation] = None

    @property
    def is_drawing(self) -> bool:
        return self._current is not None

    def set_tool(self, tool: DrawingTool):
        self.tool = tool
        self.cancel_drawing()

    def set_color(self, color: Tuple[int, int, int]):
        self.color = color

    def start_drawing(self, x: float, y: float):
        """Begin a new annotation at the press position."""
        common = dict(color=self.color, tracking_enabled=self.tracking_enabled)

        if self.tool == DrawingTool.PEN:
            self._current = PathAnnotation.start(x, y, **common)
        elif self.tool == DrawingTool.RECTANGLE:
            self._current = RectangleAnnotation(
                id=new_annotation_id(), x=float(x), y=float(y), **common
            )
        elif self.tool == DrawingTool.CIRCLE:
            self._current = CircleAnnotation(
                id=new_annotation_id(), x=float(x), y=float(y), **common
            )

    def update_drawing(self, x: float, y: float):
        """Extend the annotation being drawn to the pointer position."""
        current = self._current
        if current is None:
            return

        if isinstance(current, PathAnnotation):
            current.add_point(x, y)
        elif isinstance(current, RectangleAnnotation):
            current.width = x - current.x
            current.height = y - current.y
        elif isinstance(current, CircleAnnotation):
            current.radius = math.hypot(x - current.x, y - current.y)

    def finish_drawing(self) -> Optional[Annotation]:
        """
        Finish drawing.

        Returns:
            Completed annotation, or None if nothing was being drawn
        """
        annotation = self._current
        self._current = None
        return annotation

    def cancel_drawing(self):
        self._current = None

    def get_preview(self) -> Optional[Annotation]:
        """In-progress annotation for preview rendering."""
        return self._current
