"""
Review lifecycle: one review per user and movie, reviews are immutable once posted.
"""

from typing import Any
from uuid import UUID

from app.db.postgres import Datastore
from app.errors import Conflict, DuplicateEntryError, InvalidArgument, NotFound
from app.logger import logger
from app.models import ReviewWithMovie, ReviewWithUser
from app.ratings import RatingAggregator
from app.utils import page_request, parse_id

MIN_RATING = 1
MAX_RATING = 5


def validate_rating(rating: Any) -> int:
    if (
        isinstance(rating, bool)
        or not isinstance(rating, int)
        or not MIN_RATING <= rating <= MAX_RATING
    ):
        raise InvalidArgument(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
    return rating


class ReviewRegistry:
    def __init__(self, store: Datastore, aggregator: RatingAggregator):
        self.store = store
        self.aggregator = aggregator

    async def _ensure_movie(self, raw_movie_id: Any) -> UUID:
        movie_id = parse_id(raw_movie_id, "movie ID")
        if not await self.store.is_movie_present(movie_id):
            raise NotFound("Movie not found")
        return movie_id

    async def create(
        self, user_id: UUID, movie_id: Any, rating: Any, review_text: str = ""
    ) -> ReviewWithUser:
        rating = validate_rating(rating)
        movie_id = await self._ensure_movie(movie_id)

        # fast path for a readable error, the unique index is what actually guards
        if await self.store.get_user_movie_review(user_id, movie_id) is not None:
            raise Conflict("You have already reviewed this movie")
        try:
            review = await self.store.insert_review(user_id, movie_id, rating, review_text or "")
        except DuplicateEntryError as exc:
            raise Conflict("You have already reviewed this movie") from exc
        logger.info(f"user {user_id} reviewed movie {movie_id} with rating {rating}")

        await self.aggregator.recompute(movie_id)
        reviewer = await self.store.get_reviewer_profile(user_id)
        return ReviewWithUser(**vars(review), user=reviewer)

    async def list_by_movie(
        self, movie_id: Any, page: int, page_size: int
    ) -> tuple[list[ReviewWithUser], int]:
        request = page_request(page, page_size)
        movie_id = await self._ensure_movie(movie_id)
        reviews = await self.store.get_movie_reviews(
            movie_id, offset=request.offset, limit=request.page_size
        )
        total = await self.store.count_movie_reviews(movie_id)
        return reviews, total

    async def all_for_movie(self, movie_id: UUID) -> list[ReviewWithUser]:
        return await self.store.get_movie_reviews(movie_id)

    async def list_by_user(self, user_id: UUID) -> list[ReviewWithMovie]:
        return await self.store.get_user_reviews(user_id)
