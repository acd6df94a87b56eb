"""
Motion Tracking Session - Annotation Set and Tick Scheduling

Holds the live annotation list and decides when the engine runs:
a tick happens only while playback is active AND tracking is globally
enabled. The caller supplies the cadence (display loop, timer, or a
test calling tick() by hand).
"""

import logging
from dataclasses import replace
from typing import Any, Hashable, List, Optional

from .config import TrackingConfig
from .shapes import Annotation
from .tracking_core import TrackingEngine
from .video_pipeline import PixelSource


class TrackingSession:
    """
    One playback session of annotated video.

    Usage:
        session = TrackingSession()
        session.add_annotation(annotation, frame)
        session.play()
        while True:
            session.tick(reader.read())
            render(session.annotations)
    """

    def __init__(
        self,
        config: Optional[TrackingConfig] = None,
        source: Optional[PixelSource] = None,
        tracking_enabled: bool = True
    ):
        self.engine = TrackingEngine(source=source, config=config)
        self.tracking_enabled = tracking_enabled

        self._annotations: List[Annotation] = []
        self._playing = False

        self.logger = logging.getLogger("TrackingSession")

    # ------------------------------------------------------------------
    # Playback
    # ------------------------------------------------------------------

    def play(self):
        self._playing = True

    def pause(self):
        self._playing = False

    def toggle_play(self) -> bool:
        self._playing = not self._playing
        return self._playing

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def is_ticking(self) -> bool:
        return self._playing and self.tracking_enabled

    def set_tracking_enabled(self, enabled: bool):
        """Global tracking switch. Track states are kept while disabled."""
        self.tracking_enabled = enabled
        self.logger.info(f"Tracking {'enabled' if enabled else 'disabled'}")

    def tick(self, frame: Any) -> bool:
        """
        Run one tracking tick on the current frame.

        Returns:
            True if the engine ran
        """
        if not self.is_ticking:
            return False
        self._annotations = self.engine.run_tick(frame, self._annotations)
        return True

    # ------------------------------------------------------------------
    # Annotations
    # ------------------------------------------------------------------

    @property
    def annotations(self) -> List[Annotation]:
        return list(self._annotations)

    def get_annotation(self, annotation_id: Hashable) -> Optional[Annotation]:
        for annotation in self._annotations:
            if annotation.id == annotation_id:
                return annotation
        return None

    def add_annotation(self, annotation: Annotation, frame: Any = None) -> bool:
        """
        Add a finished annotation.

        With a frame and tracking on, its template is captured right away
        so it starts following on the next tick.

        Returns:
            True if a template was captured
        """
        if self.get_annotation(annotation.id) is not None:
            raise ValueError(f"Duplicate annotation id: {annotation.id!r}")

        self._annotations.append(annotation)
        if frame is None or not (self.tracking_enabled and annotation.tracking_enabled):
            return False
        return self.engine.capture(frame, annotation)

    def delete_annotation(self, annotation_id: Hashable) -> bool:
        """Remove an annotation and its track state."""
        before = len(self._annotations)
        self._annotations = [a for a in self._annotations if a.id != annotation_id]
        self.engine.remove(annotation_id)
        return len(self._annotations) < before

    def set_annotation_tracking(self, annotation_id: Hashable, enabled: bool) -> bool:
        """
        Toggle tracking for a single annotation.

        Disabling drops its track state; the template is recaptured where
        the annotation is on the first tick after it is enabled again.
        """
        for i, annotation in enumerate(self._annotations):
            if annotation.id == annotation_id:
                if annotation.tracking_enabled != enabled:
                    self._annotations[i] = replace(annotation, tracking_enabled=enabled)
                if not enabled:
                    self.engine.remove(annotation_id)
                return True
        return False

    def clear_all(self):
        """Remove every annotation and all tracking state."""
        self._annotations = []
        self.engine.clear()

    def load_video(self):
        """Reset for a newly opened video."""
        self.pause()
        self.clear_all()

    def reinitialize(self, frame: Any) -> int:
        """Recapture every tracked annotation where it is drawn now."""
        return self.engine.reinitialize(frame, self._annotations)

