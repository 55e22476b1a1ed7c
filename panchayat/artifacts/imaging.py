"""
Image artifacts - JPEG re-encoding of rendered documents, with a placeholder
image when re-encoding is unavailable.
"""

import io
import textwrap
from typing import Union

import pymupdf
from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from ..core.config import JPEG_QUALITY, PORTAL_NAME, RENDER_DPI
from ..core.kinds import RecordKind
from ..core.schema import ApplicationRecord
from .renderer import document_rows

FAILURE_NOTICE = "IMAGE CONVERSION FAILED - PLACEHOLDER COPY"
# Leading bytes of the JPEG comment on every placeholder image
PLACEHOLDER_MARKER = b"X-PANCHAYAT-PLACEHOLDER"

PLACEHOLDER_SIZE = (800, 600)
PLACEHOLDER_BACKGROUND = (240, 249, 255)
PLACEHOLDER_PRIMARY = (30, 64, 175)
PLACEHOLDER_BODY = (55, 65, 81)
PLACEHOLDER_ALERT = (185, 28, 28)


class ReencodeDisabled(RuntimeError):
    """Raised as a value when image re-encoding is switched off."""


def reencode_to_jpeg(pdf_bytes: bytes, dpi: int = RENDER_DPI, quality: int = JPEG_QUALITY,
                     enabled: bool = True) -> Union[bytes, Exception]:
    """Rasterize the first page of a PDF to JPEG.

    Returns the JPEG bytes, or the exception that stopped the conversion.
    Nothing is raised to the caller.
    """
    if not enabled:
        return ReencodeDisabled("image re-encoding is disabled")

    try:
        with pymupdf.open(stream=pdf_bytes, filetype="pdf") as doc:
            if doc.page_count < 1:
                return ValueError("document has no pages")
            pixmap = doc[0].get_pixmap(dpi=dpi, alpha=False)
            return pixmap.tobytes("jpeg", jpg_quality=quality)
    except Exception as e:
        return e


def _load_font(size: int):
    return ImageFont.load_default(size=size)


def render_placeholder(record: ApplicationRecord, kind: RecordKind, reason: str = None,
                       quality: int = JPEG_QUALITY) -> bytes:
    """Draw a plain JPEG with the record's key fields and a visible failure notice.

    The notice is also stored as the JPEG comment so clients can detect the
    placeholder without reading pixels.
    """
    image = Image.new("RGB", PLACEHOLDER_SIZE, PLACEHOLDER_BACKGROUND)
    draw = ImageDraw.Draw(image)
    width, height = PLACEHOLDER_SIZE

    draw.rectangle((20, 20, width - 20, height - 20), outline=PLACEHOLDER_PRIMARY, width=2)
    draw.text((width / 2, 70), kind.title, fill=PLACEHOLDER_PRIMARY, font=_load_font(36), anchor="mm")
    draw.text((width / 2, 110), kind.subtitle, fill=PLACEHOLDER_PRIMARY, font=_load_font(24), anchor="mm")
    draw.text((width / 2, 160), str(record.fields.get(kind.headline_field, "")), fill=PLACEHOLDER_BODY,
              font=_load_font(20), anchor="mm")

    body_font = _load_font(14)
    y = 200
    for label, value in document_rows(record, kind)[:9]:
        draw.text((160, y), f"{label}:", fill=PLACEHOLDER_BODY, font=body_font)
        draw.text((340, y), value[:48], fill=PLACEHOLDER_BODY, font=body_font)
        y += 24

    draw.rectangle((60, height - 140, width - 60, height - 80), outline=PLACEHOLDER_ALERT, width=2)
    draw.text((width / 2, height - 122), FAILURE_NOTICE, fill=PLACEHOLDER_ALERT, font=_load_font(16), anchor="mm")
    if reason:
        detail = textwrap.shorten(f"Reason: {reason}", width=90, placeholder="...")
        draw.text((width / 2, height - 98), detail, fill=PLACEHOLDER_ALERT, font=_load_font(11), anchor="mm")

    draw.text((width / 2, height - 50), f"Generated by {PORTAL_NAME}", fill=PLACEHOLDER_BODY,
              font=_load_font(10), anchor="mm")
    draw.text((width / 2, height - 34), "Download the PDF version for the official copy.",
              fill=PLACEHOLDER_BODY, font=_load_font(9), anchor="mm")

    buffer = io.BytesIO()
    comment = PLACEHOLDER_MARKER + f" {FAILURE_NOTICE}: {record.id}".encode("utf-8")
    image.save(buffer, format="JPEG", quality=quality, comment=comment)
    return buffer.getvalue()


def is_placeholder(content: bytes) -> bool:
    """Check whether JPEG bytes carry the placeholder marker in their comment."""
    try:
        with Image.open(io.BytesIO(content)) as image:
            comment = image.info.get("comment", b"")
    except (UnidentifiedImageError, OSError):
        return False
    if isinstance(comment, str):
        comment = comment.encode("utf-8")
    return comment.startswith(PLACEHOLDER_MARKER)
