"""
Motion Tracking Video Pipeline - Frame Access for the Tracking Engine

The engine never decodes or advances video itself. It pulls pixels
through a PixelSource, given an opaque frame handle:

- PixelSource: abstract region/dimension access
- ArrayPixelSource: frames are numpy arrays (H x W x C), as OpenCV produces
- VideoFileReader: synchronous OpenCV reader that hands out one frame per tick
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional, Tuple

import cv2
import numpy as np


class FrameUnavailable(Exception):
    """The frame handle is missing, not an image, or has zero size."""


class PixelSource(ABC):
    """
    Pixel access for one frame handle.

    Implementations must return consistent data for the same handle
    within one tick. The engine calls snapshot() once per tick and then
    only reads from the returned handle.
    """

    @abstractmethod
    def dimensions(self, frame: Any) -> Tuple[int, int]:
        """
        Get frame size.

        Returns:
            (width, height)

        Raises:
            FrameUnavailable: If the frame is not ready
        """
        pass

    @abstractmethod
    def get_region(self, frame: Any, x: int, y: int, width: int, height: int) -> np.ndarray:
        """
        Get the pixels of a rectangle of the frame.

        The rectangle is assumed to lie inside the frame.

        Returns:
            Array of shape (height, width, 3) with the red, green and blue
            channels (alpha dropped)
        """
        pass

    def snapshot(self, frame: Any) -> Any:
        """Freeze the frame for the duration of one tick."""
        return frame


class ArrayPixelSource(PixelSource):
    """
    Pixel source over numpy frames.

    Accepts H x W (grayscale), H x W x 3 (BGR/RGB) and H x W x 4 frames.
    Channel order does not matter for matching, only the first three
    channels are compared.
    """

    def dimensions(self, frame: Any) -> Tuple[int, int]:
        if frame is None:
            raise FrameUnavailable("No frame")
        if not isinstance(frame, np.ndarray) or frame.ndim not in (2, 3):
            raise FrameUnavailable(f"Not an image: {type(frame).__name__}")
        h, w = frame.shape[:2]
        if w == 0 or h == 0:
            raise FrameUnavailable(f"Empty frame ({w}x{h})")
        return w, h

    def get_region(self, frame: np.ndarray, x: int, y: int, width: int, height: int) -> np.ndarray:
        region = frame[y:y + height, x:x + width]
        if region.ndim == 2:
            return region[:, :, np.newaxis]
        return region[:, :, :3]

    def snapshot(self, frame: Any) -> np.ndarray:
        # Decoders may reuse their output buffer
        self.dimensions(frame)
        frozen = np.array(frame, copy=True)
        frozen.setflags(write=False)
        return frozen


class VideoFileReader:
    """
    Synchronous video file reader.

    Unlike a free-running capture thread, frames only advance when read()
    is called, so playback cadence is decided by the caller (one read per
    tick while playing).

    Usage:
        with VideoFileReader("clip.mp4") as reader:
            frame = reader.read()
    """

    def __init__(self, filepath: str, loop: bool = False):
        self.filepath = filepath
        self.loop = loop

        self._cap: Optional[cv2.VideoCapture] = None
        self._frame: Optional[np.ndarray] = None
        self._frame_count = 0
        self._total_frames = 0
        self._width = 0
        self._height = 0
        self._native_fps = 0.0

        self.logger = logging.getLogger("VideoFileReader")

    def start(self) -> bool:
        """Open the file. Returns False if it cannot be decoded."""
        if self._cap is not None:
            return True

        cap = cv2.VideoCapture(self.filepath)
        if not cap.isOpened():
            self.logger.error(f"Failed to open video file: {self.filepath}")
            cap.release()
            return False

        self._cap = cap
        self._width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self._height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self._native_fps = cap.get(cv2.CAP_PROP_FPS) or 30.0
        self._total_frames = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        self._frame_count = 0

        self.logger.info(
            f"Video opened: {self._width}x{self._height} @ {self._native_fps:.1f}fps, "
            f"{self._total_frames} frames"
        )
        return True

    def stop(self):
        """Release the decoder."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            self.logger.info("Video closed")

    def read(self) -> Optional[np.ndarray]:
        """
        Decode the next frame.

        Returns:
            BGR frame, or None at end of file (unless looping)
        """
        if self._cap is None:
            return None

        ret, frame = self._cap.read()
        if not ret and self.loop and self._frame_count > 0:
            self._cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
            ret, frame = self._cap.read()

        if not ret:
            self.logger.info("End of video file reached")
            return None

        self._frame = frame
        self._frame_count += 1
        return frame

    @property
    def current_frame(self) -> Optional[np.ndarray]:
        """Last decoded frame (stays available while paused)."""
        return self._frame

    def seek(self, frame_number: int):
        if self._cap is not None:
            self._cap.set(cv2.CAP_PROP_POS_FRAMES, frame_number)

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    @property
    def frame_size(self) -> Tuple[int, int]:
        return (self._width, self._height)

    @property
    def fps(self) -> float:
        return self._native_fps

    @property
    def total_frames(self) -> int:
        return self._total_frames

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
