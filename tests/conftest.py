import itertools
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from app.errors import DuplicateEntryError
from app.models import (Movie, MovieFilter, MovieSort, MovieSummary, NewMovie,
                        Review, ReviewerProfile, ReviewWithMovie,
                        ReviewWithUser, SortField, SortOrder, User,
                        WatchlistEntry, WatchlistItem, WatchlistMovie)
from app.ratings import RatingAggregator
from app.reviews import ReviewRegistry
from app.watchlist import WatchlistRegistry

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)

SORT_ATTRIBUTES = {
    SortField.TITLE: "title",
    SortField.RELEASE_YEAR: "release_year",
    SortField.AVERAGE_RATING: "average_rating",
    SortField.CREATED_AT: "created_at",
    SortField.UPDATED_AT: "updated_at",
}


class FakeDatastore:
    """In-memory stand-in for `app.db.postgres.Datastore`.

    Unique constraints raise DuplicateEntryError like the Postgres schema does,
    and every write gets a strictly increasing timestamp.
    """

    def __init__(self):
        self.movies: dict[uuid.UUID, Movie] = {}
        self.users: dict[uuid.UUID, User] = {}
        self.reviews: dict[uuid.UUID, Review] = {}
        self.watchlist: dict[uuid.UUID, WatchlistEntry] = {}
        self.rating_updates = 0
        self._clock = itertools.count()

    def _now(self) -> datetime:
        return BASE_TIME + timedelta(seconds=next(self._clock))

    # synchronous helpers for test setup

    def add_movie(self, title: str, **fields) -> Movie:
        now = self._now()
        movie = Movie(
            id=uuid.uuid4(),
            title=title,
            genre=fields.get("genre", []),
            release_year=fields.get("release_year"),
            director=fields.get("director"),
            cast=fields.get("cast", []),
            synopsis=fields.get("synopsis"),
            poster_url=fields.get("poster_url"),
            average_rating=fields.get("average_rating", 0.0),
            created_at=now,
            updated_at=now,
        )
        self.movies[movie.id] = movie
        return movie

    def add_user(self, username: str, is_admin: bool = False, password_hash: str = "x") -> User:
        user = User(
            id=uuid.uuid4(),
            username=username,
            email=f"{username}@example.com",
            password_hash=password_hash,
            profile_picture=None,
            is_admin=is_admin,
            join_date=self._now(),
        )
        self.users[user.id] = user
        return user

    # movies

    async def insert_movie(self, movie: NewMovie) -> Movie:
        if any(existing.title == movie.title for existing in self.movies.values()):
            raise DuplicateEntryError("movies_title_key")
        return self.add_movie(**movie._asdict())

    async def get_movie(self, movie_id) -> Optional[Movie]:
        return self.movies.get(movie_id)

    async def get_movie_by_title(self, title: str) -> Optional[Movie]:
        return next((m for m in self.movies.values() if m.title == title), None)

    async def is_movie_present(self, movie_id) -> bool:
        return movie_id in self.movies

    def _filter(self, movie_filter: MovieFilter) -> list[Movie]:
        movies = list(self.movies.values())
        if movie_filter.genres:
            movies = [m for m in movies if set(m.genre) & set(movie_filter.genres)]
        if movie_filter.year is not None:
            movies = [m for m in movies if m.release_year == movie_filter.year]
        if movie_filter.min_rating is not None:
            movies = [m for m in movies if m.average_rating >= movie_filter.min_rating]
        return movies

    async def find_movies(
        self, movie_filter: MovieFilter, sort: MovieSort, offset: int, limit: int
    ) -> list[Movie]:
        attribute = SORT_ATTRIBUTES[sort.field]
        movies = sorted(self._filter(movie_filter), key=lambda m: str(m.id))
        present = [m for m in movies if getattr(m, attribute) is not None]
        missing = [m for m in movies if getattr(m, attribute) is None]
        present.sort(key=lambda m: getattr(m, attribute), reverse=sort.order is SortOrder.DESC)
        return (present + missing)[offset:offset + limit]

    async def count_movies(self, movie_filter: MovieFilter) -> int:
        return len(self._filter(movie_filter))

    async def get_movies(self, movie_ids) -> list[Movie]:
        return [self.movies[idx] for idx in movie_ids if idx in self.movies]

    async def get_all_movie_titles(self):
        movies = sorted(self.movies.values(), key=lambda m: m.title)
        return [m.id for m in movies], [m.title for m in movies]

    async def update_movie_rating(self, movie_id, average_rating: float) -> None:
        self.rating_updates += 1
        movie = self.movies[movie_id]
        movie.average_rating = average_rating
        movie.updated_at = self._now()

    # reviews

    def _find_review(self, user_id, movie_id) -> Optional[Review]:
        return next(
            (r for r in self.reviews.values() if r.user_id == user_id and r.movie_id == movie_id),
            None,
        )

    async def get_user_movie_review(self, user_id, movie_id) -> Optional[Review]:
        return self._find_review(user_id, movie_id)

    async def insert_review(self, user_id, movie_id, rating: int, review_text: str) -> Review:
        if self._find_review(user_id, movie_id) is not None:
            raise DuplicateEntryError("reviews_user_movie_key")
        review = Review(
            id=uuid.uuid4(),
            user_id=user_id,
            movie_id=movie_id,
            rating=rating,
            review_text=review_text,
            timestamp=self._now(),
        )
        self.reviews[review.id] = review
        return review

    async def get_movie_ratings(self, movie_id) -> list[int]:
        return [r.rating for r in self.reviews.values() if r.movie_id == movie_id]

    async def get_movie_reviews(
        self, movie_id, offset: int = 0, limit: Optional[int] = None
    ) -> list[ReviewWithUser]:
        reviews = sorted(
            (r for r in self.reviews.values() if r.movie_id == movie_id),
            key=lambda r: r.timestamp,
            reverse=True,
        )
        end = None if limit is None else offset + limit
        return [
            ReviewWithUser(**vars(r), user=await self.get_reviewer_profile(r.user_id))
            for r in reviews[offset:end]
        ]

    async def count_movie_reviews(self, movie_id) -> int:
        return len([r for r in self.reviews.values() if r.movie_id == movie_id])

    async def get_user_reviews(self, user_id) -> list[ReviewWithMovie]:
        reviews = sorted(
            (r for r in self.reviews.values() if r.user_id == user_id),
            key=lambda r: r.timestamp,
            reverse=True,
        )
        out = []
        for review in reviews:
            movie = self.movies.get(review.movie_id)
            summary = MovieSummary(
                id=movie.id,
                title=movie.title,
                poster_url=movie.poster_url,
                release_year=movie.release_year,
            ) if movie is not None else None
            out.append(ReviewWithMovie(**vars(review), movie=summary))
        return out

    async def get_reviewer_profile(self, user_id) -> Optional[ReviewerProfile]:
        user = self.users.get(user_id)
        if user is None:
            return None
        return ReviewerProfile(
            id=user.id, username=user.username, profile_picture=user.profile_picture
        )

    # watchlist

    def _find_entry(self, user_id, movie_id) -> Optional[WatchlistEntry]:
        return next(
            (
                e for e in self.watchlist.values()
                if e.user_id == user_id and e.movie_id == movie_id
            ),
            None,
        )

    async def get_watchlist_entry(self, user_id, movie_id) -> Optional[WatchlistEntry]:
        return self._find_entry(user_id, movie_id)

    async def insert_watchlist_entry(self, user_id, movie_id) -> WatchlistEntry:
        if self._find_entry(user_id, movie_id) is not None:
            raise DuplicateEntryError("watchlist_user_movie_key")
        entry = WatchlistEntry(
            id=uuid.uuid4(), user_id=user_id, movie_id=movie_id, date_added=self._now()
        )
        self.watchlist[entry.id] = entry
        return entry

    async def delete_watchlist_entry(self, user_id, movie_id) -> bool:
        entry = self._find_entry(user_id, movie_id)
        if entry is None:
            return False
        del self.watchlist[entry.id]
        return True

    async def get_watchlist_movie(self, movie_id) -> Optional[WatchlistMovie]:
        movie = self.movies.get(movie_id)
        if movie is None:
            return None
        return WatchlistMovie(
            id=movie.id,
            title=movie.title,
            poster_url=movie.poster_url,
            release_year=movie.release_year,
            director=movie.director,
            genre=list(movie.genre),
            average_rating=movie.average_rating,
        )

    async def get_watchlist(self, user_id, offset: int, limit: int) -> list[WatchlistItem]:
        entries = sorted(
            (e for e in self.watchlist.values() if e.user_id == user_id),
            key=lambda e: e.date_added,
            reverse=True,
        )
        return [
            WatchlistItem(**vars(e), movie=await self.get_watchlist_movie(e.movie_id))
            for e in entries[offset:offset + limit]
        ]

    async def count_watchlist(self, user_id) -> int:
        return len([e for e in self.watchlist.values() if e.user_id == user_id])

    # users

    async def insert_user(self, username: str, email: str, password_hash: str) -> User:
        if await self.get_user_by_username(username) is not None:
            raise DuplicateEntryError("users_username_key")
        if await self.get_user_by_email(email) is not None:
            raise DuplicateEntryError("users_email_key")
        user = self.add_user(username, password_hash=password_hash)
        user.email = email
        return user

    async def get_user(self, user_id) -> Optional[User]:
        return self.users.get(user_id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.email == email), None)

    async def get_user_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.username == username), None)

    async def update_user(self, user_id, changes: dict[str, Any]) -> Optional[User]:
        user = self.users.get(user_id)
        if user is None:
            return None
        for column, value in changes.items():
            setattr(user, column, value)
        return user


@pytest.fixture
def store() -> FakeDatastore:
    return FakeDatastore()


@pytest.fixture
def aggregator(store) -> RatingAggregator:
    return RatingAggregator(store)


@pytest.fixture
def reviews(store, aggregator) -> ReviewRegistry:
    return ReviewRegistry(store, aggregator)


@pytest.fixture
def watchlist(store) -> WatchlistRegistry:
    return WatchlistRegistry(store)
