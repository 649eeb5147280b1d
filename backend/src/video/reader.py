"""Frame sources for the scopes — sequential video decoding and still images."""

import logging

import av
import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


class VideoFrameSource:
    """Decodes a video file front to back as RGBA frames."""

    def __init__(self, path: str):
        self.container = av.open(path)
        if not self.container.streams.video:
            self.container.close()
            raise ValueError(f"No video stream found in {path}")
        self.stream = self.container.streams.video[0]
        self.stream.thread_type = "AUTO"
        self.fps = float(self.stream.average_rate) if self.stream.average_rate else 30.0
        self.width = self.stream.width
        self.height = self.stream.height
        self.frames_read = 0
        self._decoder = self.container.decode(video=0)
        self._exhausted = False

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def read(self) -> np.ndarray | None:
        """Next frame as (H, W, 4) uint8, or None at end of stream."""
        if self._exhausted:
            return None
        try:
            frame = next(self._decoder)
        except StopIteration:
            self._exhausted = True
            return None
        except av.error.InvalidDataError as e:
            logger.warning("Stopping at undecodable frame %d: %s", self.frames_read, e)
            self._exhausted = True
            return None
        self.frames_read += 1
        return frame.to_ndarray(format="rgba")

    def close(self):
        self.container.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


def load_image(path: str) -> np.ndarray:
    """Load a still image as (H, W, 4) uint8 RGBA."""
    with Image.open(path) as img:
        return np.array(img.convert("RGBA"))
