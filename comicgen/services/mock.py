"""Offline image client that renders deterministic placeholder images."""

from __future__ import annotations

import hashlib
import textwrap
from io import BytesIO
from pathlib import Path
from typing import Sequence

from PIL import Image, ImageDraw

from ..utils.files import atomic_write
from .base import provider_size

_PLACEHOLDER_SCALE = 4


class MockImageClient:
    """Writes a flat-coloured image captioned with the panel name and prompt.

    The colour is derived from the prompt hash so repeated runs produce
    byte-identical files, which keeps the pipeline testable without a network.
    """

    name = "mock"

    def generate(
        self,
        prompt: str,
        output_path: Path,
        aspect_ratio: str,
        quality: str,
        reference_images: Sequence[str] | None = None,
    ) -> Path:
        width, height = provider_size(aspect_ratio)
        size = (width // _PLACEHOLDER_SCALE, height // _PLACEHOLDER_SCALE)
        digest = hashlib.sha256(prompt.encode("utf-8")).digest()
        background = (160 + digest[0] % 96, 160 + digest[1] % 96, 160 + digest[2] % 96)

        image = Image.new("RGB", size, background)
        draw = ImageDraw.Draw(image)
        caption = [output_path.stem, f"{aspect_ratio} / {quality}"]
        caption.extend(textwrap.wrap(prompt, width=max(10, size[0] // 7))[:6])
        if reference_images:
            caption.append(f"refs: {len(reference_images)}")
        draw.multiline_text((8, 8), "\n".join(caption), fill=(40, 40, 40))

        buffer = BytesIO()
        fmt = "JPEG" if output_path.suffix.lower() in {".jpg", ".jpeg"} else "PNG"
        image.save(buffer, format=fmt)
        return atomic_write(output_path, buffer.getvalue())
