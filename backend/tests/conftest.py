import numpy as np
import pytest

from config import ScopeSettings
from scopes.intensity import ScratchArena


def solid_frame(h: int, w: int, rgb: tuple[int, int, int], channels: int = 4) -> np.ndarray:
    """(h, w, channels) uint8 frame filled with one colour (alpha 255)."""
    frame = np.zeros((h, w, channels), dtype=np.uint8)
    frame[:, :, 0] = rgb[0]
    frame[:, :, 1] = rgb[1]
    frame[:, :, 2] = rgb[2]
    if channels == 4:
        frame[:, :, 3] = 255
    return frame


@pytest.fixture
def random_frame():
    """Deterministic 120x160 RGBA frame."""
    rng = np.random.default_rng(42)
    return rng.integers(0, 256, (120, 160, 4), dtype=np.uint8)


@pytest.fixture
def settings():
    return ScopeSettings()


@pytest.fixture
def arena():
    return ScratchArena()


@pytest.fixture
def synthetic_video_path(tmp_path):
    """2s 160x120 video whose red channel ramps over time."""
    import av

    path = str(tmp_path / "ramp.mp4")
    container = av.open(path, mode="w")
    stream = container.add_stream("libx264", rate=30)
    stream.width = 160
    stream.height = 120
    stream.pix_fmt = "yuv420p"
    for i in range(60):
        frame = np.zeros((120, 160, 3), dtype=np.uint8)
        frame[:, :, 0] = int(255 * i / 60)
        frame[:, :, 1] = 128
        frame[:, :, 2] = 64
        vf = av.VideoFrame.from_ndarray(frame, format="rgb24")
        for pkt in stream.encode(vf):
            container.mux(pkt)
    for pkt in stream.encode():
        container.mux(pkt)
    container.close()
    return path


@pytest.fixture
def make_solid():
    return solid_frame
