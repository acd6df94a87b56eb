#!/usr/bin/env python3
"""
HoloRay MotionTrack - Motion-Tracked Annotation Demo

Draw annotations over a video and watch them follow the structure
underneath while the video plays.

Usage:
    python main_demo.py path/to/video.mp4

Controls:
    - LEFT DRAG: Draw with the current tool
    - RIGHT CLICK: Delete nearest annotation
    - 1 / 2 / 3: Pen / Box / Circle tool
    - K: Cycle color
    - SPACE or P: Play / pause
    - T: Toggle tracking
    - R: Reinitialize tracking at current positions
    - C: Clear all annotations
    - Q/ESC: Quit
"""

import sys
import math
import time
import logging
import argparse
from pathlib import Path
from typing import Optional

import cv2  # pyright: ignore[reportMissingImports]
import numpy as np  # pyright: ignore[reportMissingImports]

sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

from motiontrack.config import TrackingConfig
from motiontrack.video_pipeline import VideoFileReader
from motiontrack.session import TrackingSession
from motiontrack.shapes import AnnotationDrawer, DrawingTool
from motiontrack.annotation_layer import AnnotationRenderer

# BGR versions of the palette: red, green, blue, yellow, magenta, cyan
PALETTE = [
    (0, 0, 255),
    (0, 255, 0),
    (255, 102, 0),
    (0, 255, 255),
    (255, 0, 255),
    (255, 255, 0),
]

TOOL_KEYS = {
    ord('1'): DrawingTool.PEN,
    ord('2'): DrawingTool.RECTANGLE,
    ord('3'): DrawingTool.CIRCLE,
}


class MotionTrackDemo:
    """
    Interactive demo of motion-tracked annotations.
    """

    WINDOW_NAME = "HoloRay Motion-Tracked Annotations"

    def __init__(
            self,
            source: str,
            config: TrackingConfig,
            loop: bool = False,
            tracking_enabled: bool = True
    ):
        self.source = source
        self.loop = loop

        self.video: Optional[VideoFileReader] = None
        self.session = TrackingSession(config=config, tracking_enabled=tracking_enabled)
        self.drawer = AnnotationDrawer()
        self.drawer.tracking_enabled = tracking_enabled
        self.renderer = AnnotationRenderer()

        self._running = False
        self._color_index = 0
        self._frame: Optional[np.ndarray] = None
        self._right_click_position = None

        self.logger = logging.getLogger("MotionTrackDemo")

    def _mouse_callback(self, event, x, y, flags, param):
        if event == cv2.EVENT_LBUTTONDOWN:
            self.drawer.start_drawing(x, y)
        elif event == cv2.EVENT_MOUSEMOVE and self.drawer.is_drawing:
            self.drawer.update_drawing(x, y)
        elif event == cv2.EVENT_LBUTTONUP:
            annotation = self.drawer.finish_drawing()
            if annotation is not None:
                captured = self.session.add_annotation(annotation, self._frame)
                self.logger.info(
                    f"Added {annotation.kind} {annotation.id} at ({annotation.x:.0f}, {annotation.y:.0f})"
                    f"{' (template captured)' if captured else ''}"
                )
        elif event == cv2.EVENT_RBUTTONDOWN:
            self._right_click_position = (x, y)

    def _handle_right_click(self):
        if self._right_click_position is None:
            return
        x, y = self._right_click_position
        self._right_click_position = None

        nearest = None
        nearest_dist = float("inf")
        for annotation in self.session.annotations:
            dist = math.hypot(annotation.x - x, annotation.y - y)
            if dist < nearest_dist:
                nearest, nearest_dist = annotation, dist

        if nearest is not None and nearest_dist < 80:
            self.session.delete_annotation(nearest.id)
            self.logger.info(f"Deleted annotation {nearest.id}")

    def _handle_key(self, key: int):
        if key in (ord('q'), 27):
            self._running = False
        elif key in (ord(' '), ord('p')):
            playing = self.session.toggle_play()
            self.logger.info("Playing" if playing else "Paused")
        elif key == ord('t'):
            enabled = not self.session.tracking_enabled
            self.session.set_tracking_enabled(enabled)
            self.drawer.tracking_enabled = enabled
        elif key == ord('r'):
            if self._frame is not None:
                self.session.reinitialize(self._frame)
        elif key == ord('c'):
            self.session.clear_all()
            self.logger.info("Cleared all annotations")
        elif key == ord('k'):
            self._color_index = (self._color_index + 1) % len(PALETTE)
            self.drawer.set_color(PALETTE[self._color_index])
        elif key in TOOL_KEYS:
            self.drawer.set_tool(TOOL_KEYS[key])

    def run(self):
        """Run the demo."""
        source_path = Path(self.source).expanduser()
        if not source_path.is_file():
            self.logger.error(f"Video file not found: {source_path}")
            return

        self.video = VideoFileReader(str(source_path), loop=self.loop)
        if not self.video.start():
            return

        self.session.load_video()
        self._frame = self.video.read()
        if self._frame is None:
            self.logger.error("No frames received from video source")
            self.video.stop()
            return

        cv2.namedWindow(self.WINDOW_NAME)
        cv2.setMouseCallback(self.WINDOW_NAME, self._mouse_callback)

        frame_delay = 1.0 / self.video.fps if self.video.fps > 0 else 1.0 / 30
        self._running = True
        self.logger.info("Demo running. Draw on the frame, SPACE to play.")

        try:
            while self._running:
                loop_start = time.perf_counter()

                if self.session.is_playing:
                    frame = self.video.read()
                    if frame is None:
                        self.session.pause()
                        self.logger.info("End of video; paused")
                    else:
                        self._frame = frame
                        self.session.tick(self._frame)

                self._handle_right_click()

                output = self._frame.copy()
                self.renderer.render_all(output, self.session.annotations, self.drawer.get_preview())
                self.renderer.render_hud(
                    output,
                    annotation_count=len(self.session.annotations),
                    playing=self.session.is_playing,
                    tracking_enabled=self.session.tracking_enabled,
                    tool=self.drawer.tool.value
                )
                cv2.imshow(self.WINDOW_NAME, output)

                elapsed = time.perf_counter() - loop_start
                wait_ms = max(1, int((frame_delay - elapsed) * 1000))
                key = cv2.waitKey(wait_ms) & 0xFF
                if key != 0xFF:
                    self._handle_key(key)
        finally:
            self.video.stop()
            cv2.destroyAllWindows()
            self.logger.info("Demo stopped.")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="HoloRay Motion-Tracked Annotations Demo",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Controls:
  LEFT DRAG    Draw with the current tool
  RIGHT CLICK  Delete nearest annotation
  1 / 2 / 3    Pen / Box / Circle
  K            Cycle color
  SPACE / P    Play / pause
  T            Toggle tracking
  R            Reinitialize tracking
  C            Clear all
  Q/ESC        Quit

Tuning can also come from the environment or a .env file:
  MOTIONTRACK_REGION_SIZE=80 MOTIONTRACK_SAMPLE_STRIDE=2 python main_demo.py clip.mp4
        """
    )

    parser.add_argument("source", help="Video file path")
    parser.add_argument(
        "--loop",
        action="store_true",
        help="Loop the video when it reaches the end"
    )
    parser.add_argument(
        "--no-tracking",
        action="store_true",
        help="Start with tracking disabled"
    )
    parser.add_argument("--region-size", type=int, default=None, help="Template size in pixels")
    parser.add_argument("--search-radius", type=int, default=None, help="Search radius in pixels")
    parser.add_argument("--stride", type=int, default=None, help="Search grid step in pixels")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    overrides = {
        "region_size": args.region_size,
        "search_radius": args.search_radius,
        "sample_stride": args.stride,
    }
    try:
        config = TrackingConfig.from_env().with_overrides(
            **{k: v for k, v in overrides.items() if v is not None}
        )
    except ValueError as e:
        print(f"Invalid configuration: {e}")
        sys.exit(1)

    print("\n" + "=" * 60)
    print("  HoloRay Motion-Tracked Annotations")
    print("=" * 60)
    print(f"  Source: {args.source}")
    print(f"  Tracking: {'Disabled' if args.no_tracking else 'Enabled'}")
    print(f"  Region: {config.region_size}px | Radius: {config.search_radius}px | "
          f"Stride: {config.sample_stride}px")
    print("=" * 60)
    print("\n  Draw on the frame, then press SPACE to play.\n")

    demo = MotionTrackDemo(
        source=args.source,
        config=config,
        loop=args.loop,
        tracking_enabled=not args.no_tracking
    )
    demo.run()


if __name__ == "__main__":
    main()
