"""
Motion Tracking Annotation Layer - Status-Aware Overlay Rendering

Draws annotations over video frames. The stroke of a tracked
annotation reflects its tracking status:
- Solid, own color when actively tracking
- Amber, short dashes when uncertain
- Red, long dashes when lost
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
import cv2

from .shapes import (
    Annotation,
    CircleAnnotation,
    PathAnnotation,
    RectangleAnnotation,
    TrackingStatus,
)


@dataclass
class StatusStyle:
    """Stroke override for a tracking status."""
    color: Optional[Tuple[int, int, int]]  # None = annotation's own color
    dash: Optional[Tuple[int, int]]        # (on, off) in pixels, None = solid


STATUS_STYLES = {
    TrackingStatus.ACTIVE: StatusStyle(color=None, dash=None),
    TrackingStatus.UNCERTAIN: StatusStyle(color=(11, 158, 245), dash=(3, 3)),   # #F59E0B
    TrackingStatus.LOST: StatusStyle(color=(68, 68, 239), dash=(5, 5)),         # #EF4444
}


def _dashed_polyline(
    frame: np.ndarray,
    points: Sequence[Tuple[float, float]],
    closed: bool,
    color: Tuple[int, int, int],
    thickness: int,
    dash: Tuple[int, int]
):
    """Draw a polyline as on/off dashes, keeping the dash phase across segments."""
    pts = [(float(x), float(y)) for x, y in points]
    if closed and len(pts) > 1:
        pts.append(pts[0])

    on, off = dash
    period = on + off
    phase = 0.0

    for (x1, y1), (x2, y2) in zip(pts, pts[1:]):
        length = math.hypot(x2 - x1, y2 - y1)
        if length == 0:
            continue
        ux, uy = (x2 - x1) / length, (y2 - y1) / length

        pos = 0.0
        while pos < length:
            in_period = (phase + pos) % period
            if in_period < on:
                step = min(on - in_period, length - pos)
                start = (int(round(x1 + ux * pos)), int(round(y1 + uy * pos)))
                end = (int(round(x1 + ux * (pos + step))), int(round(y1 + uy * (pos + step))))
                cv2.line(frame, start, end, color, thickness, cv2.LINE_AA)
            else:
                step = min(period - in_period, length - pos)
            pos += step

        phase = (phase + length) % period


class AnnotationRenderer:
    """
    Renders annotations onto video frames.

    Usage:
        renderer = AnnotationRenderer()
        frame = renderer.render_all(frame, session.annotations, preview)
    """

    CIRCLE_SEGMENTS_DEGREES = 5

    def __init__(self, thickness: int = 3):
        self.thickness = thickness

    def stroke_for(self, annotation: Annotation) -> StatusStyle:
        """Effective color and dash pattern for an annotation."""
        if not annotation.tracking_enabled:
            return StatusStyle(color=annotation.color, dash=None)
        style = STATUS_STYLES[annotation.tracking_status]
        return StatusStyle(color=style.color or annotation.color, dash=style.dash)

    def _outline(self, annotation: Annotation) -> Tuple[List[Tuple[float, float]], bool]:
        """Polygonal outline of an annotation and whether it is closed."""
        if isinstance(annotation, PathAnnotation):
            return list(annotation.points), False

        if isinstance(annotation, RectangleAnnotation):
            x1, y1, x2, y2 = annotation.normalized_bounds()
            return [(x1, y1), (x2, y1), (x2, y2), (x1, y2)], True

        if isinstance(annotation, CircleAnnotation):
            pts = cv2.ellipse2Poly(
                (int(round(annotation.x)), int(round(annotation.y))),
                (int(round(annotation.radius)), int(round(annotation.radius))),
                0, 0, 360, self.CIRCLE_SEGMENTS_DEGREES
            )
            return [(float(p[0]), float(p[1])) for p in pts], True

        raise TypeError(f"Unsupported annotation type: {type(annotation).__name__}")

    def render_annotation(self, frame: np.ndarray, annotation: Annotation) -> np.ndarray:
        """Render a single annotation onto the frame (in place)."""
        style = self.stroke_for(annotation)
        points, closed = self._outline(annotation)

        if len(points) == 1:
            x, y = points[0]
            cv2.circle(frame, (int(round(x)), int(round(y))), max(1, self.thickness // 2),
                       style.color, -1, cv2.LINE_AA)
            return frame

        if style.dash is not None:
            _dashed_polyline(frame, points, closed, style.color, self.thickness, style.dash)
        else:
            pts = np.array([(int(round(x)), int(round(y))) for x, y in points], dtype=np.int32)
            cv2.polylines(frame, [pts.reshape(-1, 1, 2)], closed, style.color,
                          self.thickness, cv2.LINE_AA)
        return frame

    def render_all(
        self,
        frame: np.ndarray,
        annotations: Iterable[Annotation],
        preview: Optional[Annotation] = None
    ) -> np.ndarray:
        """
        Render all annotations, then the in-progress one on top.

        Returns:
            The same frame, drawn on
        """
        for annotation in annotations:
            self.render_annotation(frame, annotation)
        if preview is not None:
            self.render_annotation(frame, preview)
        return frame

    def render_hud(
        self,
        frame: np.ndarray,
        annotation_count: int,
        playing: bool,
        tracking_enabled: bool,
        tool: str = ""
    ) -> np.ndarray:
        """Status bar with playback/tracking state and key help."""
        h, w = frame.shape[:2]

        overlay = frame.copy()
        cv2.rectangle(overlay, (0, 0), (w, 34), (0, 0, 0), -1)
        cv2.addWeighted(overlay, 0.6, frame, 0.4, 0, frame)

        state = "PLAY" if playing else "PAUSE"
        tracking = "Tracking Active" if tracking_enabled else "Tracking Disabled"
        plural = "" if annotation_count == 1 else "s"
        text = f"{state} | {tracking} | {annotation_count} annotation{plural}"
        if tool:
            text += f" | tool: {tool}"

        cv2.putText(frame, text, (10, 23), cv2.FONT_HERSHEY_SIMPLEX, 0.55,
                    (0, 255, 0) if tracking_enabled else (200, 200, 200), 1, cv2.LINE_AA)
        return frame
