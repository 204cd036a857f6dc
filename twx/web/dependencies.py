"""Shared dependencies for TWX web routes.

Dependencies are injected using FastAPI's Depends() system.

Usage:
    from fastapi import Depends
    from twx.web.dependencies import get_element_id

    @router.get("/elements/{element_id}")
    async def get_element(element_id: UUID = Depends(get_element_id)):
        ...
"""

from __future__ import annotations

from uuid import UUID

from twx.errors import NotFoundError


def get_element_id(element_id: str) -> UUID:
    """Parse the element path parameter.

    Malformed ids cannot name an element, so they are reported as not found
    instead of as a schema error.
    """
    try:
        return UUID(element_id)
    except ValueError:
        raise NotFoundError("element", element_id) from None
