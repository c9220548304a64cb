from __future__ import annotations

import io
import os
from dataclasses import dataclass
from typing import List, Optional

import fitz
from PIL import Image

from .config import TEXTRACT

PAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".tif", ".tiff", ".bmp", ".pdf"}
# Formats AnalyzeDocument accepts as raw bytes
NATIVE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".tif", ".tiff"}


@dataclass
class PageImage:
    path: str  # source file
    label: str  # unique per page, used for cache file names
    page_index: int = 0
    data: Optional[bytes] = None


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def is_page_file(name: str) -> bool:
    return os.path.splitext(name)[1].lower() in PAGE_EXTENSIONS


def _to_png_bytes(path: str) -> bytes:
    with Image.open(path) as im:
        im = im.convert("RGB")
        buf = io.BytesIO()
        im.save(buf, format="PNG")
        return buf.getvalue()


def pdf_page_count(path: str) -> int:
    doc = fitz.open(path)
    try:
        return doc.page_count
    finally:
        doc.close()


def render_pdf_page(path: str, page_index: int, dpi: Optional[int] = None) -> bytes:
    use_dpi = dpi or TEXTRACT.render_dpi
    doc = fitz.open(path)
    try:
        page = doc.load_page(page_index)
        scale = use_dpi / 72.0
        pm = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
        return pm.tobytes("png")
    finally:
        doc.close()


def expand_pages(path: str) -> List[PageImage]:
    """One entry per page: a PDF contributes each of its pages in order."""
    stem = os.path.splitext(os.path.basename(path))[0]
    if os.path.splitext(path)[1].lower() == ".pdf":
        return [PageImage(path=path, label=f"{stem}.p{i + 1}", page_index=i) for i in range(pdf_page_count(path))]
    return [PageImage(path=path, label=stem)]


def load_page_bytes(page: PageImage, dpi: Optional[int] = None) -> bytes:
    if page.data is not None:
        return page.data
    ext = os.path.splitext(page.path)[1].lower()
    if ext == ".pdf":
        return render_pdf_page(page.path, page.page_index, dpi=dpi)
    if ext in NATIVE_EXTENSIONS:
        with open(page.path, "rb") as f:
            return f.read()
    return _to_png_bytes(page.path)
