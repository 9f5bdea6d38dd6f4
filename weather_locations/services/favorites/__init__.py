"""Favorites domain components split by responsibility.

``ordering`` holds the transactional rules that keep display orders dense;
``notifications`` holds the post-commit side effects (live updates and
weather enrichment) and the dispatcher that runs them.
"""

from .notifications import EnrichmentTrigger, FavoritesBroadcaster, SideEffectDispatcher
from .ordering import AddResult, FavoritesOrderingEngine, RemoveResult

__all__ = [
    "AddResult",
    "EnrichmentTrigger",
    "FavoritesBroadcaster",
    "FavoritesOrderingEngine",
    "RemoveResult",
    "SideEffectDispatcher",
]
