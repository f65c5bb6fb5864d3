"""
Per-user watchlists. Only the owner may read or change a watchlist.
"""

from typing import Any, Optional
from uuid import UUID

from app.db.postgres import Datastore
from app.errors import (Conflict, DuplicateEntryError, Forbidden,
                        InvalidArgument, NotFound)
from app.logger import logger
from app.models import WatchlistItem
from app.utils import page_request, parse_id


def ensure_owner(caller_id: UUID, raw_user_id: Any, action: str) -> UUID:
    try:
        user_id = parse_id(raw_user_id, "user ID")
    except InvalidArgument as exc:
        raise Forbidden(f"You can only {action} your own watchlist") from exc
    if user_id != caller_id:
        raise Forbidden(f"You can only {action} your own watchlist")
    return user_id


class WatchlistRegistry:
    def __init__(self, store: Datastore):
        self.store = store

    async def add(self, caller_id: UUID, user_id: Any, movie_id: Optional[Any]) -> WatchlistItem:
        user_id = ensure_owner(caller_id, user_id, "add to")
        if not movie_id:
            raise InvalidArgument("Movie ID is required")
        movie_id = parse_id(movie_id, "movie ID")
        movie = await self.store.get_watchlist_movie(movie_id)
        if movie is None:
            raise NotFound("Movie not found")

        if await self.store.get_watchlist_entry(user_id, movie_id) is not None:
            raise Conflict("Movie is already in your watchlist")
        try:
            entry = await self.store.insert_watchlist_entry(user_id, movie_id)
        except DuplicateEntryError as exc:
            raise Conflict("Movie is already in your watchlist") from exc
        logger.info(f"user {user_id} added movie {movie_id} to watchlist")
        return WatchlistItem(**vars(entry), movie=movie)

    async def remove(self, caller_id: UUID, user_id: Any, movie_id: Any) -> None:
        user_id = ensure_owner(caller_id, user_id, "remove from")
        movie_id = parse_id(movie_id, "movie ID")
        if not await self.store.delete_watchlist_entry(user_id, movie_id):
            raise NotFound("Movie not found in watchlist")
        logger.info(f"user {user_id} removed movie {movie_id} from watchlist")

    async def list(
        self, caller_id: UUID, user_id: Any, page: int, page_size: int
    ) -> tuple[list[WatchlistItem], int]:
        user_id = ensure_owner(caller_id, user_id, "view")
        request = page_request(page, page_size)
        items = await self.store.get_watchlist(user_id, request.offset, request.page_size)
        total = await self.store.count_watchlist(user_id)
        return items, total
