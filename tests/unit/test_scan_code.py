"""Unit tests for scan code rendering."""

from __future__ import annotations

import base64
from unittest.mock import patch

from twx.registry.service import scan_code_image
from twx.rendering.scan_code import render_scan_code_data_url, render_scan_code_svg


def test_svg_document():
    svg = render_scan_code_svg("TWX-ASSET-IfcColumn-000001")

    assert "<svg" in svg
    assert "</svg>" in svg


def test_data_url_wraps_svg():
    url = render_scan_code_data_url("TWX-ASSET-IfcColumn-000001")

    prefix = "data:image/svg+xml;base64,"
    assert url.startswith(prefix)
    assert b"<svg" in base64.b64decode(url[len(prefix):])


def test_render_failure_yields_no_image():
    with patch(
        "twx.registry.service.render_scan_code_data_url",
        side_effect=RuntimeError("renderer down"),
    ):
        assert scan_code_image("TWX-ASSET-IfcColumn-000001") is None
