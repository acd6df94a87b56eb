"""
HoloRay MotionTrack - Motion-Tracked Video Annotations

Annotations (freehand paths, rectangles, circles) drawn over a video
follow the structure they were drawn on as the video plays, using
plain pixel appearance matching.

Features:
- Template capture around each annotation's anchor
- Windowed SSD search on a sampling grid
- Confidence / loss state machine (active, uncertain, lost)
- Rigid translation of annotation geometry
- Status-aware overlay rendering

Quick Start:
    from motiontrack import TrackingSession, AnnotationDrawer, VideoFileReader

    reader = VideoFileReader("clip.mp4")
    reader.start()
    session = TrackingSession()

    # Draw an annotation
    drawer = AnnotationDrawer()
    drawer.start_drawing(100, 100)
    drawer.update_drawing(140, 120)
    session.add_annotation(drawer.finish_drawing(), reader.read())

    # Update loop
    session.play()
    while (frame := reader.read()) is not None:
        session.tick(frame)
        display(session.annotations)
"""

__version__ = "1.0.0"

# Configuration
from .config import TrackingConfig

# Frame access
from .video_pipeline import (
    PixelSource,
    ArrayPixelSource,
    FrameUnavailable,
    VideoFileReader,
)

# Annotation model
from .shapes import (
    Annotation,
    PathAnnotation,
    RectangleAnnotation,
    CircleAnnotation,
    TrackingStatus,
    DrawingTool,
    AnnotationDrawer,
)

# Core tracking
from .tracking_core import (
    Template,
    TrackState,
    MatchResult,
    RegionMatcher,
    TrackingEngine,
    capture_template,
    ssd_score,
    confidence_from_score,
    apply_match,
    classify_status,
    propagate,
)

# Session and rendering
from .session import TrackingSession
from .annotation_layer import AnnotationRenderer, StatusStyle, STATUS_STYLES

__all__ = [
    # Version
    "__version__",

    # Config
    "TrackingConfig",

    # Frames
    "PixelSource",
    "ArrayPixelSource",
    "FrameUnavailable",
    "VideoFileReader",

    # Annotations
    "Annotation",
    "PathAnnotation",
    "RectangleAnnotation",
    "CircleAnnotation",
    "TrackingStatus",
    "DrawingTool",
    "AnnotationDrawer",

    # Core Tracking
    "Template",
    "TrackState",
    "MatchResult",
    "RegionMatcher",
    "TrackingEngine",
    "capture_template",
    "ssd_score",
    "confidence_from_score",
    "apply_match",
    "classify_status",
    "propagate",

    # Session / Rendering
    "TrackingSession",
    "AnnotationRenderer",
    "StatusStyle",
    "STATUS_STYLES",
]
