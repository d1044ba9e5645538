from . import games, health

__all__ = [
    "games",
    "health",
]
