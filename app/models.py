"""
Data models and types.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import NamedTuple, Optional
from uuid import UUID


@dataclass
class Movie:
    id: UUID
    title: str
    genre: list[str]
    release_year: Optional[int]
    director: Optional[str]
    cast: list[str]
    synopsis: Optional[str]
    poster_url: Optional[str]
    average_rating: float
    created_at: datetime
    updated_at: datetime


class NewMovie(NamedTuple):
    title: str
    genre: list[str]
    release_year: Optional[int]
    director: Optional[str]
    cast: list[str]
    synopsis: Optional[str]
    poster_url: Optional[str]


@dataclass
class MovieSummary:
    """Movie fields shown next to a user's reviews."""

    id: UUID
    title: str
    poster_url: Optional[str]
    release_year: Optional[int]


@dataclass
class WatchlistMovie(MovieSummary):
    """Movie fields shown in a watchlist."""

    director: Optional[str]
    genre: list[str]
    average_rating: float


@dataclass
class User:
    id: UUID
    username: str
    email: str
    password_hash: str
    profile_picture: Optional[str]
    is_admin: bool
    join_date: datetime

    def profile(self) -> "UserProfile":
        return UserProfile(
            id=self.id,
            username=self.username,
            email=self.email,
            profile_picture=self.profile_picture,
            is_admin=self.is_admin,
            join_date=self.join_date,
        )


@dataclass
class UserProfile:
    """User without credentials, safe to send to clients."""

    id: UUID
    username: str
    email: str
    profile_picture: Optional[str]
    is_admin: bool
    join_date: datetime


@dataclass
class ReviewerProfile:
    id: UUID
    username: str
    profile_picture: Optional[str]


@dataclass
class Review:
    id: UUID
    user_id: UUID
    movie_id: UUID
    rating: int
    review_text: str
    timestamp: datetime


@dataclass
class ReviewWithUser(Review):
    user: Optional[ReviewerProfile]


@dataclass
class ReviewWithMovie(Review):
    movie: Optional[MovieSummary]


@dataclass
class WatchlistEntry:
    id: UUID
    user_id: UUID
    movie_id: UUID
    date_added: datetime


@dataclass
class WatchlistItem(WatchlistEntry):
    movie: Optional[WatchlistMovie]


@dataclass
class UploadedMedia:
    url: str
    public_id: str


class SortField(str, Enum):
    """Movie attributes a client may sort by, valued by their public name."""

    TITLE = "title"
    RELEASE_YEAR = "releaseYear"
    AVERAGE_RATING = "averageRating"
    CREATED_AT = "createdAt"
    UPDATED_AT = "updatedAt"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass
class MovieFilter:
    genres: list[str] = field(default_factory=list)
    year: Optional[int] = None
    min_rating: Optional[float] = None


class MovieSort(NamedTuple):
    field: SortField = SortField.CREATED_AT
    order: SortOrder = SortOrder.DESC


class PageRequest(NamedTuple):
    page: int
    page_size: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass
class Pagination:
    current_page: int
    total_pages: int
    total_items: int
    has_next: bool
    has_prev: bool
