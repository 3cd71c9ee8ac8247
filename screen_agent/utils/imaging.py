import base64
from io import BytesIO
from pathlib import Path

from PIL import Image

from ..core import config
from ..core.types import Frame


def frame_to_data_url(frame: Frame, max_size: int = None, quality: int = None) -> str:
    """Downscale a frame to reduce token usage and return it as a JPEG data URL."""
    max_size = max_size or config.IMAGE_MAX_SIZE
    quality = quality or config.JPEG_QUALITY

    img = frame.to_image().convert("RGB")
    w, h = img.size
    if max(w, h) > max_size:
        scale = max_size / max(w, h)
        img = img.resize((max(1, int(w * scale)), max(1, int(h * scale))), Image.LANCZOS)

    buf = BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    b64 = base64.b64encode(buf.getvalue()).decode("utf-8")
    return f"data:image/jpeg;base64,{b64}"


def encode_png(frame: Frame) -> bytes:
    """Lossless PNG encoding with fixed parameters, so equal frames give equal bytes."""
    buf = BytesIO()
    frame.to_image().save(buf, format="PNG", optimize=False, compress_level=1)
    return buf.getvalue()


def save_frame(frame: Frame, path: Path) -> Path:
    path.write_bytes(encode_png(frame))
    return path
