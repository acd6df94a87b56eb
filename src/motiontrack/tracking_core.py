"""
Motion Tracking Core - Appearance-Matching Engine

Makes annotations follow the structure they were drawn on, using only
raw pixel comparison:

┌─────────────────────────────────────────────────────────────────┐
│                    FIRST TICK (per annotation)                   │
│  TemplateCapture: 60x60 snapshot around the anchor, clamped to   │
│  the frame. Annotation is NOT moved on this tick.                │
├─────────────────────────────────────────────────────────────────┤
│                    EVERY LATER TICK                              │
│  RegionMatcher: SSD over R,G,B on a stride-4 grid within 40px    │
│  of the last position → confidence = 1 - score / 1e6             │
│  Policy: accept if confident AND moved > 2px, count weak ticks   │
│  Status: lost (>30 weak ticks) / uncertain (<0.5) / active       │
└─────────────────────────────────────────────────────────────────┘

State Machine (per tick, after a match):
    confidence > 0.3 and moved   → accept position, lost_frames = 0
    confidence < 0.3             → hold position, lost_frames += 1
    otherwise                    → no change at all (jitter guard)

Only rigid translation is modeled: no rotation, scale or deformation.
"""

import math
import logging
import threading
from dataclasses import dataclass, replace
from typing import Any, Dict, Hashable, Iterable, List, Optional, Tuple

import cv2
import numpy as np

from .config import TrackingConfig
from .shapes import (
    Annotation,
    CircleAnnotation,
    PathAnnotation,
    RectangleAnnotation,
    TrackingStatus,
)
from .video_pipeline import ArrayPixelSource, FrameUnavailable, PixelSource


@dataclass(frozen=True)
class Template:
    """Captured appearance of a tracked point."""
    pixels: np.ndarray  # (height, width, channels), int32
    width: int
    height: int
    x: int  # Top-left in the frame it was captured from
    y: int


@dataclass
class TrackState:
    """
    Per-annotation tracking record, owned by the engine.

    last_position is the last ACCEPTED match center; it can differ from
    the annotation anchor when the status was not active.
    """
    last_position: Tuple[float, float]
    template: Template
    confidence: float = 1.0
    lost_frames: int = 0


@dataclass(frozen=True)
class MatchResult:
    """Best candidate of one search. score is +inf when nothing was searched."""
    x: float
    y: float
    score: float
    candidates: int = 0


def capture_template(
    source: PixelSource,
    frame: Any,
    x: float,
    y: float,
    region_size: int = 60
) -> Optional[TrackState]:
    """
    Snapshot the region around an anchor.

    The top-left is clamped to the frame origin and the region is
    cropped at the right and bottom edges, so near an edge the template
    is smaller than region_size.

    Args:
        source: Pixel access
        frame: Frame handle
        x, y: Anchor position
        region_size: Side of the square region

    Returns:
        Fresh TrackState (confidence 1.0, lost_frames 0), or None if
        the frame is unavailable or the region is empty
    """
    try:
        frame_w, frame_h = source.dimensions(frame)
    except FrameUnavailable:
        return None

    left = max(0, math.floor(x - region_size / 2))
    top = max(0, math.floor(y - region_size / 2))
    width = min(region_size, frame_w - left)
    height = min(region_size, frame_h - top)
    if width <= 0 or height <= 0:
        return None

    pixels = np.array(source.get_region(frame, left, top, width, height), dtype=np.int32)
    if pixels.size == 0:
        return None

    template = Template(pixels=pixels, width=width, height=height, x=left, y=top)
    return TrackState(last_position=(float(x), float(y)), template=template)


def ssd_score(template: np.ndarray, region: np.ndarray) -> float:
    """
    Mean per-pixel sum of squared channel differences.

    Only the first three channels are compared. Both arrays must have
    the same height and width.
    """
    t = np.asarray(template, dtype=np.int64)[:, :, :3]
    r = np.asarray(region, dtype=np.int64)[:, :, :3]
    if t.shape != r.shape:
        raise ValueError(f"Shape mismatch: template {t.shape} vs region {r.shape}")
    pixel_count = t.shape[0] * t.shape[1]
    if pixel_count == 0:
        return math.inf
    diff = t - r
    return float(np.sum(diff * diff)) / pixel_count


class RegionMatcher:
    """
    Windowed template search.

    Candidates are template-sized regions whose top-left lies on a grid
    of step sample_stride inside the search window, scanned row by row
    (y outer). The lowest SSD wins; on ties the first candidate scanned
    is kept.
    """

    # Fraction of the largest possible raw SSD treated as a float32 tie
    RESCORE_TOLERANCE = 1e-4

    def __init__(self, search_radius: int = 40, sample_stride: int = 4):
        self.search_radius = search_radius
        self.sample_stride = sample_stride

    def search_window(
        self,
        last_position: Tuple[float, float],
        template: Template,
        frame_size: Tuple[int, int]
    ) -> Tuple[range, range]:
        """Candidate top-left coordinates (xs, ys); the far edge is excluded."""
        frame_w, frame_h = frame_size
        last_x, last_y = last_position

        start_x = max(0, math.floor(last_x - self.search_radius))
        start_y = max(0, math.floor(last_y - self.search_radius))
        end_x = min(frame_w - template.width, math.floor(last_x + self.search_radius))
        end_y = min(frame_h - template.height, math.floor(last_y + self.search_radius))

        xs = range(start_x, end_x, self.sample_stride)
        ys = range(start_y, end_y, self.sample_stride)
        return xs, ys

    def match(self, source: PixelSource, frame: Any, state: TrackState) -> MatchResult:
        """
        Find the best match of the state's template in the frame.

        Does not modify the state.
        """
        template = state.template
        tw, th = template.width, template.height
        xs, ys = self.search_window(state.last_position, template, source.dimensions(frame))

        best_score = math.inf
        best_x, best_y = state.last_position
        candidates = 0

        if len(xs) == 0 or len(ys) == 0:
            return MatchResult(best_x, best_y, best_score, candidates)

        search = np.ascontiguousarray(
            source.get_region(frame, xs[0], ys[0], xs[-1] - xs[0] + tw, ys[-1] - ys[0] + th),
            dtype=np.float32
        )
        tpl = np.ascontiguousarray(template.pixels[:, :, :3], dtype=np.float32)

        # Raw channel-summed SSD at every offset, kept on the sampling grid
        res = cv2.matchTemplate(search, tpl, cv2.TM_SQDIFF)
        res = res[::self.sample_stride, ::self.sample_stride]
        candidates = int(res.size)

        # float32 correlation is approximate; rescore the near-best exactly
        # in scan order so ties keep the first candidate
        tolerance = self.RESCORE_TOLERANCE * tw * th * 3 * 255 ** 2
        near = np.flatnonzero(res.ravel() <= float(res.min()) + tolerance)

        for idx in near:
            row, col = divmod(int(idx), res.shape[1])
            x, y = xs[col], ys[row]
            score = ssd_score(template.pixels, source.get_region(frame, x, y, tw, th))
            if score < best_score:
                best_score = score
                best_x = x + tw / 2
                best_y = y + th / 2

        return MatchResult(best_x, best_y, best_score, candidates)


# ============================================================================
# UPDATE & CONFIDENCE POLICY
# ============================================================================

def confidence_from_score(score: float, normalization: float = 1_000_000.0) -> float:
    return max(0.0, 1.0 - score / normalization)


def apply_match(state: TrackState, match: MatchResult, config: TrackingConfig) -> TrackState:
    """
    Apply one match to a track state.

    Returns:
        Updated copy, or the SAME object when the match is confident but
        below the movement threshold (nothing is refreshed, not even
        confidence)
    """
    confidence = confidence_from_score(match.score, config.normalization)
    last_x, last_y = state.last_position
    moved = (
        abs(match.x - last_x) > config.movement_threshold or
        abs(match.y - last_y) > config.movement_threshold
    )

    if confidence > config.accept_confidence and moved:
        return replace(
            state,
            last_position=(match.x, match.y),
            confidence=confidence,
            lost_frames=0
        )
    elif confidence < config.accept_confidence:
        return replace(
            state,
            confidence=confidence,
            lost_frames=state.lost_frames + 1
        )

    return state


def classify_status(state: TrackState, config: TrackingConfig) -> TrackingStatus:
    """Status from the current confidence and loss counter."""
    if state.lost_frames > config.lost_frame_limit:
        return TrackingStatus.LOST
    if state.confidence < config.uncertain_confidence:
        return TrackingStatus.UNCERTAIN
    return TrackingStatus.ACTIVE


def propagate(annotation: Annotation, state: TrackState, status: TrackingStatus) -> Annotation:
    """
    Write status and geometry back to an annotation.

    Only an active status moves the annotation: the anchor jumps to the
    tracked position and every path point follows by the same delta.
    """
    if status != TrackingStatus.ACTIVE:
        return annotation.with_status(status)

    dx = state.last_position[0] - annotation.x
    dy = state.last_position[1] - annotation.y

    if isinstance(annotation, (PathAnnotation, RectangleAnnotation, CircleAnnotation)):
        moved = annotation.translated(dx, dy)
    else:
        raise TypeError(f"Unsupported annotation type: {type(annotation).__name__}")

    return moved.with_status(status)


# ============================================================================
# ENGINE
# ============================================================================

class TrackingEngine:
    """
    Runs one tracking tick across all annotations.

    Owns the identifier → TrackState map; nothing else reads or writes it.
    Every annotation in a tick is matched against the same frozen frame.

    Usage:
        engine = TrackingEngine()
        while playing:
            annotations = engine.run_tick(next_frame(), annotations)
    """

    def __init__(
        self,
        source: Optional[PixelSource] = None,
        config: Optional[TrackingConfig] = None
    ):
        self.source = source or ArrayPixelSource()
        self.config = config or TrackingConfig()
        self.matcher = RegionMatcher(
            search_radius=self.config.search_radius,
            sample_stride=self.config.sample_stride
        )

        self._states: Dict[Hashable, TrackState] = {}
        self._lock = threading.Lock()
        self._tick_count = 0

        self.logger = logging.getLogger("TrackingEngine")

    def _snapshot(self, frame: Any) -> Optional[Any]:
        try:
            snapshot = self.source.snapshot(frame)
            self.source.dimensions(snapshot)
        except FrameUnavailable as e:
            self.logger.debug(f"Frame unavailable, skipping: {e}")
            return None
        return snapshot

    def _capture(self, frame: Any, annotation: Annotation) -> bool:
        state = capture_template(
            self.source, frame, annotation.x, annotation.y, self.config.region_size
        )
        if state is None:
            self.logger.warning(
                f"Template capture failed for {annotation.id!r} at "
                f"({annotation.x:.0f}, {annotation.y:.0f})"
            )
            return False

        self._states[annotation.id] = state
        t = state.template
        self.logger.debug(
            f"Captured {annotation.id!r}: {t.width}x{t.height} template at ({t.x}, {t.y})"
        )
        return True

    def _track(self, frame: Any, annotation: Annotation, state: TrackState) -> Annotation:
        match = self.matcher.match(self.source, frame, state)
        new_state = apply_match(state, match, self.config)
        self._states[annotation.id] = new_state

        status = classify_status(new_state, self.config)
        if status != annotation.tracking_status:
            self.logger.info(
                f"{annotation.id!r}: {annotation.tracking_status.value} → {status.value} "
                f"(confidence {new_state.confidence:.2f}, lost {new_state.lost_frames})"
            )
        return propagate(annotation, new_state, status)

    def run_tick(self, frame: Any, annotations: Iterable[Annotation]) -> List[Annotation]:
        """
        Advance tracking by one frame.

        Annotations without tracking pass through untouched and lose any track
        state. An annotation seen for the first time only gets its template
        captured.

        Returns:
            Annotations in input order, updated where tracking applied
        """
        annotations = list(annotations)
        snapshot = self._snapshot(frame)
        if snapshot is None:
            return annotations

        with self._lock:
            self._tick_count += 1
            updated = []
            for annotation in annotations:
                if not annotation.tracking_enabled:
                    self._states.pop(annotation.id, None)
                    updated.append(annotation)
                    continue

                state = self._states.get(annotation.id)
                if state is None:
                    self._capture(snapshot, annotation)
                    updated.append(annotation)
                else:
                    updated.append(self._track(snapshot, annotation, state))

        return updated

    def capture(self, frame: Any, annotation: Annotation) -> bool:
        """
        Capture (or recapture) one annotation's template right away.

        Returns:
            True if a TrackState now exists for it
        """
        snapshot = self._snapshot(frame)
        if snapshot is None:
            return False
        with self._lock:
            return self._capture(snapshot, annotation)

    def reinitialize(self, frame: Any, annotations: Iterable[Annotation]) -> int:
        """
        Drop all tracking history and recapture every tracked annotation
        at its current anchor.

        Returns:
            Number of annotations captured
        """
        snapshot = self._snapshot(frame)
        with self._lock:
            self._states.clear()
            if snapshot is None:
                self.logger.info("Reinitialized without a frame; captures deferred to next tick")
                return 0

            captured = 0
            for annotation in annotations:
                if annotation.tracking_enabled and self._capture(snapshot, annotation):
                    captured += 1

        self.logger.info(f"Reinitialized tracking: {captured} annotation(s) captured")
        return captured

    def remove(self, annotation_id: Hashable) -> bool:
        """Forget the state of a deleted annotation."""
        with self._lock:
            return self._states.pop(annotation_id, None) is not None

    def prune(self, annotations: Iterable[Annotation]) -> List[Hashable]:
        """Drop states whose annotation is no longer in the set."""
        live = {a.id for a in annotations}
        with self._lock:
            stale = [aid for aid in self._states if aid not in live]
            for aid in stale:
                del self._states[aid]
        if stale:
            self.logger.debug(f"Pruned {len(stale)} stale track state(s)")
        return stale

    def clear(self):
        """Drop all tracking state."""
        with self._lock:
            self._states.clear()
        self.logger.info("Tracking state cleared")

    def get_state(self, annotation_id: Hashable) -> Optional[TrackState]:
        """Copy of an annotation's TrackState, if any."""
        with self._lock:
            state = self._states.get(annotation_id)
            return replace(state) if state is not None else None

    @property
    def tracked_ids(self) -> List[Hashable]:
        with self._lock:
            return list(self._states.keys())

    @property
    def tick_count(self) -> int:
        return self._tick_count

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)

    def __contains__(self, annotation_id: Hashable) -> bool:
        with self._lock:
            return annotation_id in self._states
