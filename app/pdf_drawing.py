"""Canvas primitives shared by the FZul and ZIM documents."""

from __future__ import annotations

from typing import Optional

from reportlab.lib.colors import Color
from reportlab.pdfbase.pdfmetrics import stringWidth

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
FONT_OBLIQUE = "Helvetica-Oblique"

BLACK = Color(0, 0, 0)


def draw_rect(
    pdf, x, y, width, height, *, fill: Optional[Color] = None, stroke: Optional[Color] = BLACK, line_width=0.5
):
    pdf.saveState()
    pdf.setLineWidth(line_width)
    if stroke is not None:
        pdf.setStrokeColor(stroke)
    if fill is not None:
        pdf.setFillColor(fill)
    pdf.rect(x, y, width, height, stroke=1 if stroke is not None else 0, fill=1 if fill is not None else 0)
    pdf.restoreState()


def draw_line(pdf, x1, y1, x2, y2, *, color: Color = BLACK, line_width=0.5):
    pdf.saveState()
    pdf.setLineWidth(line_width)
    pdf.setStrokeColor(color)
    pdf.line(x1, y1, x2, y2)
    pdf.restoreState()


def draw_text(pdf, x, y, text, size, *, font: str = FONT, color: Color = BLACK):
    pdf.setFillColor(color)
    pdf.setFont(font, size)
    pdf.drawString(x, y, str(text))


def draw_text_centered(pdf, x, y, width, text, size, *, font: str = FONT, color: Color = BLACK):
    pdf.setFillColor(color)
    pdf.setFont(font, size)
    pdf.drawCentredString(x + width / 2, y, str(text))


def draw_text_right(pdf, x, y, width, text, size, *, font: str = FONT, color: Color = BLACK):
    """Right-aligned inside a cell of ``width``, 4 pt from its right edge."""
    pdf.setFillColor(color)
    pdf.setFont(font, size)
    pdf.drawRightString(x + width - 4, y, str(text))


def fit_text(text: str, size: float, max_width: float, font: str = FONT) -> str:
    """Cut ``text`` with an ellipsis until it fits into ``max_width``."""
    if stringWidth(text, font, size) <= max_width:
        return text
    shortened = text
    while len(shortened) > 10 and stringWidth(shortened + "...", font, size) > max_width:
        shortened = shortened[:-1]
    return shortened + "..."
