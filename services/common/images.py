from __future__ import annotations

from pathlib import Path
from typing import Literal

ImageKind = Literal['png', 'jpeg', 'unknown']

PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'
JPEG_SIGNATURE = b'\xff\xd8'


def sniff_image_kind(buffer: bytes) -> ImageKind:
    if buffer[:len(PNG_SIGNATURE)] == PNG_SIGNATURE:
        return 'png'
    if buffer[:len(JPEG_SIGNATURE)] == JPEG_SIGNATURE:
        return 'jpeg'
    return 'unknown'


def read_image_kind(path: Path) -> ImageKind:
    with path.open('rb') as handle:
        return sniff_image_kind(handle.read(len(PNG_SIGNATURE)))


def file_size_kb(path: Path) -> float:
    return round(path.stat().st_size / 1024, 1)
