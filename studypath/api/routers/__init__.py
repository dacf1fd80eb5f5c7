from . import sessions_router

__all__ = ["sessions_router"]
