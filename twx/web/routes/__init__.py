"""TWX API route modules.

Each module exports a `router` object (APIRouter instance) that the app in
twx.web.app includes.

Usage:
    from twx.web.routes import elements
    app.include_router(elements.router)
"""

from twx.web.routes import elements, health, inspections, projects

__all__ = [
    "elements",
    "health",
    "inspections",
    "projects",
]
