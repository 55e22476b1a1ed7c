"""
Document renderer - draws the official A4 certificate for a record with PyMuPDF.

The layout is fixed: page background, border frame, diagonal watermark, title
block, field table, seal glyph, signature block and footer disclaimer. Output
depends only on the record, so rendering the same record state twice gives the
same document.
"""

from typing import List, Tuple

import pymupdf

from ..core.config import PORTAL_NAME
from ..core.kinds import RecordKind
from ..core.schema import ApplicationRecord

PAGE_WIDTH, PAGE_HEIGHT = pymupdf.paper_size("a4")

BACKGROUND = (0.941, 0.976, 1.0)      # light blue page
PRIMARY = (0.118, 0.251, 0.686)       # dark blue headings and frame
WATERMARK = (0.859, 0.918, 0.996)
BODY = (0.216, 0.255, 0.318)          # dark gray body text
SEAL = (0.573, 0.251, 0.055)          # gold/brown seal

NOT_PROVIDED = "Not provided"


def _format_value(value) -> str:
    if value is None or value == "":
        return NOT_PROVIDED
    if isinstance(value, float):
        return f"{value:,.2f}"
    return str(value)


def document_rows(record: ApplicationRecord, kind: RecordKind) -> List[Tuple[str, str]]:
    """Label/value pairs shown in the field table, in display order."""
    rows = [("Application ID", record.id)]
    for name, label in kind.field_labels:
        rows.append((label, _format_value(record.fields.get(name))))
    rows.append(("Status", kind.human_status(record.status)))
    rows.append(("Submitted On", record.created_at.strftime("%d %b %Y")))
    rows.append(("Issued On", record.updated_at.strftime("%d %b %Y")))
    return rows


def _draw_watermark(page):
    center = pymupdf.Point(PAGE_WIDTH / 2, PAGE_HEIGHT / 2)
    text = f"{PORTAL_NAME} - Official"
    width = pymupdf.get_text_length(text, fontname="helv", fontsize=26)
    page.insert_text(
        pymupdf.Point(center.x - width / 2, center.y),
        text,
        fontsize=26,
        fontname="helv",
        color=WATERMARK,
        morph=(center, pymupdf.Matrix(-45)),
    )


def _draw_title(page, kind: RecordKind):
    page.insert_textbox(pymupdf.Rect(0, 40, PAGE_WIDTH, 80), kind.title,
                        fontsize=28, fontname="hebo", color=PRIMARY, align=pymupdf.TEXT_ALIGN_CENTER)
    page.insert_textbox(pymupdf.Rect(0, 78, PAGE_WIDTH, 102), kind.subtitle,
                        fontsize=16, fontname="hebo", color=PRIMARY, align=pymupdf.TEXT_ALIGN_CENTER)
    page.insert_textbox(pymupdf.Rect(0, 102, PAGE_WIDTH, 118), PORTAL_NAME,
                        fontsize=10, fontname="helv", color=BODY, align=pymupdf.TEXT_ALIGN_CENTER)
    page.draw_line(pymupdf.Point(60, 122), pymupdf.Point(PAGE_WIDTH - 60, 122), color=PRIMARY, width=1)


def _draw_field_table(page, record: ApplicationRecord, kind: RecordKind) -> float:
    top = 140
    page.insert_textbox(pymupdf.Rect(0, top, PAGE_WIDTH, top + 16),
                        f"This is to certify that the following {kind.category.lower()} details",
                        fontsize=11, fontname="helv", color=BODY, align=pymupdf.TEXT_ALIGN_CENTER)
    page.insert_textbox(pymupdf.Rect(0, top + 15, PAGE_WIDTH, top + 31),
                        f"are officially registered with the {PORTAL_NAME} system:",
                        fontsize=11, fontname="helv", color=BODY, align=pymupdf.TEXT_ALIGN_CENTER)

    headline = _format_value(record.fields.get(kind.headline_field))
    page.insert_textbox(pymupdf.Rect(0, top + 42, PAGE_WIDTH, top + 64), headline,
                        fontsize=16, fontname="hebo", color=BODY, align=pymupdf.TEXT_ALIGN_CENTER)

    y = top + 80
    row_height = 22
    left, split, right = 80, 250, PAGE_WIDTH - 80
    for label, value in document_rows(record, kind):
        page.draw_rect(pymupdf.Rect(left, y, right, y + row_height), color=PRIMARY, width=0.5)
        page.draw_line(pymupdf.Point(split, y), pymupdf.Point(split, y + row_height), color=PRIMARY, width=0.5)
        page.insert_text(pymupdf.Point(left + 6, y + 15), f"{label}:", fontsize=10, fontname="helv", color=BODY)
        page.insert_textbox(pymupdf.Rect(split + 6, y + 4, right - 4, y + row_height), value,
                            fontsize=10, fontname="hebo", color=BODY)
        y += row_height

    timeline = record.fields.get("timeline") or []
    if timeline:
        y += 16
        page.insert_text(pymupdf.Point(left, y), "Status Timeline", fontsize=12, fontname="hebo", color=PRIMARY)
        for step in timeline:
            y += 16
            when = f" ({step['date']})" if step.get("date") else ""
            page.insert_text(pymupdf.Point(left + 10, y), f"{step['step']}: {step['status']}{when}",
                             fontsize=10, fontname="helv", color=BODY)
    return y


def _draw_seal(page):
    center = pymupdf.Point(PAGE_WIDTH - 80, PAGE_HEIGHT - 110)
    page.draw_circle(center, 30, color=SEAL, width=1.5)
    page.draw_circle(center, 24, color=SEAL, width=1)
    for offset, line in zip((-9, -2, 5, 12), ("Digital e-Gram", "Panchayat", "Official", "Seal")):
        page.insert_textbox(pymupdf.Rect(center.x - 24, center.y + offset - 6, center.x + 24, center.y + offset + 2),
                            line, fontsize=5, fontname="helv", color=SEAL, align=pymupdf.TEXT_ALIGN_CENTER)


def _draw_signature(page):
    x, y = 60, PAGE_HEIGHT - 95
    page.insert_text(pymupdf.Point(x, y - 22), f"Generated by {PORTAL_NAME}", fontsize=7, fontname="helv", color=BODY)
    page.draw_line(pymupdf.Point(x, y - 10), pymupdf.Point(x + 120, y - 10), color=BODY, width=0.8)
    page.insert_text(pymupdf.Point(x, y + 2), "Authorized Officer Signature", fontsize=7, fontname="helv", color=BODY)


def _draw_footer(page):
    page.draw_line(pymupdf.Point(40, PAGE_HEIGHT - 50), pymupdf.Point(PAGE_WIDTH - 40, PAGE_HEIGHT - 50), color=PRIMARY, width=0.5)
    page.insert_textbox(pymupdf.Rect(0, PAGE_HEIGHT - 44, PAGE_WIDTH, PAGE_HEIGHT - 34),
                        "This is a computer-generated document. No signature required.",
                        fontsize=7, fontname="helv", color=BODY, align=pymupdf.TEXT_ALIGN_CENTER)
    page.insert_textbox(pymupdf.Rect(0, PAGE_HEIGHT - 34, PAGE_WIDTH, PAGE_HEIGHT - 24),
                        "Official Document - Valid for Municipal Transactions",
                        fontsize=6, fontname="helv", color=BODY, align=pymupdf.TEXT_ALIGN_CENTER)


def render_document(record: ApplicationRecord, kind: RecordKind) -> bytes:
    """Render the record into a single-page PDF and return its bytes."""
    doc = pymupdf.open()
    try:
        page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
        page.draw_rect(page.rect, color=None, fill=BACKGROUND)
        page.draw_rect(pymupdf.Rect(10, 10, PAGE_WIDTH - 10, PAGE_HEIGHT - 10), color=PRIMARY, width=1.5)

        _draw_watermark(page)
        _draw_title(page, kind)
        _draw_field_table(page, record, kind)
        _draw_seal(page)
        _draw_signature(page)
        _draw_footer(page)

        doc.set_metadata({
            "title": f"{kind.title.title()} {kind.subtitle.title()} - {record.id}",
            "author": PORTAL_NAME,
            "subject": f"{kind.category} application {record.id}",
            "creationDate": record.updated_at.strftime("D:%Y%m%d%H%M%S"),
        })
        return doc.tobytes(garbage=3, deflate=True)
    finally:
        doc.close()
