"""API controllers for the web layer."""

from uniquote.web.controllers.quotes import router as quotes_router
from uniquote.web.controllers.security import router as security_router

__all__ = [
    "quotes_router",
    "security_router",
]
