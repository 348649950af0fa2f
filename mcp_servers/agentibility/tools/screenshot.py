from __future__ import annotations

import base64
import io
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from PIL import Image

if TYPE_CHECKING:
    from ..page import Page

logger = logging.getLogger("mcp.agentibility.screenshot")


def capture(page: Page, selector: str | None = None, full_page: bool = False) -> bytes:
    """PNG bytes of an element, the full page, or the viewport (in that order of precedence)."""
    return page.screenshot(selector=selector or None, full_page=bool(full_page) and not selector)


def image_dimensions(png: bytes) -> tuple[int, int]:
    with Image.open(io.BytesIO(png)) as img:
        return img.size


def encode_png(png: bytes) -> str:
    return base64.b64encode(png).decode("ascii")


def persist_screenshot(png: bytes, directory: str) -> dict[str, Any]:
    """Write `sequence-<ms>.png` under `directory` and describe the file."""
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f"sequence-{int(time.time() * 1000)}.png"
    # Two captures in the same millisecond must not overwrite each other.
    suffix = 1
    while path.exists():
        path = out_dir / f"sequence-{int(time.time() * 1000)}-{suffix}.png"
        suffix += 1
    path.write_bytes(png)
    width, height = image_dimensions(png)
    logger.debug("screenshot saved path=%s bytes=%d", path, len(png))
    return {"path": str(path), "size": len(png), "width": width, "height": height}
