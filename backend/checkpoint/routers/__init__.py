from . import admin, capture, health

__all__ = ["admin", "capture", "health"]
