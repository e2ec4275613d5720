from .api import ApiError, CatalogApi
from .session import ALL_CATEGORY, MemoryHistory, Navigator, NavigationSession, Player, View

__all__ = [
    "ALL_CATEGORY",
    "ApiError",
    "CatalogApi",
    "MemoryHistory",
    "NavigationSession",
    "Navigator",
    "Player",
    "View",
]
