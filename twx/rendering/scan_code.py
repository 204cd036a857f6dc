"""QR rendering for asset scan codes.

Produces an SVG data URL with reportlab's QR widget so no raster backend is
needed.
"""

from __future__ import annotations

import base64

from reportlab.graphics import renderSVG
from reportlab.graphics.barcode.qr import QrCodeWidget
from reportlab.graphics.shapes import Drawing
from reportlab.lib import colors


def render_scan_code_svg(code: str, size: float = 200, margin: int = 2) -> str:
    """Render a scan code as an SVG document string."""
    widget = QrCodeWidget(code, barBorder=margin)
    widget.barFillColor = colors.black
    widget.barStrokeColor = colors.black
    x1, y1, x2, y2 = widget.getBounds()
    width, height = x2 - x1, y2 - y1

    drawing = Drawing(size, size, transform=[size / width, 0, 0, size / height, 0, 0])
    drawing.add(widget)
    return renderSVG.drawToString(drawing)


def render_scan_code_data_url(code: str, size: float = 200) -> str:
    svg = render_scan_code_svg(code, size=size)
    encoded = base64.b64encode(svg.encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"
