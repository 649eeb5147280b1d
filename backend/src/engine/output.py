"""PNG encoding for scope rasters."""

import io
from pathlib import Path

import numpy as np
from PIL import Image


def encode_png(raster: np.ndarray) -> bytes:
    """Encode an (H, W, 3) uint8 raster to PNG bytes."""
    img = Image.fromarray(np.ascontiguousarray(raster[:, :, :3]))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def write_rasters(
    rasters: dict[str, np.ndarray], out_dir: str | Path, cycle_index: int
) -> list[Path]:
    """Write each scope raster as <scope>_<cycle>.png. Returns the written paths."""
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    written = []
    for scope_id, raster in rasters.items():
        path = out / f"{scope_id}_{cycle_index:06d}.png"
        path.write_bytes(encode_png(raster))
        written.append(path)
    return written
