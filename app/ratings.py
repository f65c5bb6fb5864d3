"""
Average rating maintenance.
"""

from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from app.db.postgres import Datastore
from app.logger import logger


def average_rating(ratings: list[int]) -> float:
    """Mean of the ratings rounded half-up to one decimal, 0 when there are none."""
    if not ratings:
        return 0.0
    mean = Decimal(sum(ratings)) / Decimal(len(ratings))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class RatingAggregator:
    """Keeps `Movie.average_rating` in line with the movie's reviews.

    Every call rescans the whole review set, so concurrent writers can only leave
    the value stale until the next recomputation, never drifted.
    """

    def __init__(self, store: Datastore):
        self.store = store

    async def recompute(self, movie_id: UUID) -> float:
        ratings = await self.store.get_movie_ratings(movie_id)
        value = average_rating(ratings)
        await self.store.update_movie_rating(movie_id, value)
        logger.info(f"movie {movie_id} average rating = {value} over {len(ratings)} reviews")
        return value
