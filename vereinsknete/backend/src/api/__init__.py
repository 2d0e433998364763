"""Public API routers exposed by the FastAPI application."""

from . import clients, health, invoices, sessions, user_profile, week

__all__ = [
    "clients",
    "health",
    "invoices",
    "sessions",
    "user_profile",
    "week",
]
