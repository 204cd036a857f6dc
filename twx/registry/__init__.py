"""Asset registry: elements, asset numbers and scan codes."""

from twx.registry.numbering import (
    format_asset_number,
    parse_asset_suffix,
    reserve_asset_number,
    scan_code_for,
)
from twx.registry.service import AssetRegistry

__all__ = [
    "AssetRegistry",
    "format_asset_number",
    "parse_asset_suffix",
    "reserve_asset_number",
    "scan_code_for",
]
