"""
Movie catalog queries: filtering, sorting and pagination over loosely typed
request parameters, plus movie lookup and creation.
"""

from typing import Any, Optional

from app.db.postgres import Datastore
from app.errors import Conflict, DuplicateEntryError, InvalidArgument, NotFound
from app.logger import logger
from app.models import (Movie, MovieFilter, MovieSort, NewMovie, SortField,
                        SortOrder)
from app.utils import page_request, parse_id, strip_or_none


def parse_genres(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [genre.strip() for genre in raw.split(",") if genre.strip()]


def parse_movie_filter(
    genre: Optional[str] = None,
    year: Optional[Any] = None,
    min_rating: Optional[Any] = None,
) -> MovieFilter:
    movie_filter = MovieFilter(genres=parse_genres(genre))
    if year not in (None, ""):
        try:
            movie_filter.year = int(year)
        except (TypeError, ValueError) as exc:
            raise InvalidArgument("year must be an integer") from exc
    if min_rating not in (None, ""):
        try:
            movie_filter.min_rating = float(min_rating)
        except (TypeError, ValueError) as exc:
            raise InvalidArgument("minRating must be a number") from exc
    return movie_filter


def parse_movie_sort(sort_by: Optional[str] = None, sort_order: Optional[str] = None) -> MovieSort:
    if not sort_by:
        return MovieSort()
    try:
        field = SortField(sort_by)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in SortField)
        raise InvalidArgument(f"sortBy must be one of: {allowed}") from exc
    try:
        order = SortOrder(sort_order or SortOrder.ASC.value)
    except ValueError as exc:
        raise InvalidArgument("sortOrder must be 'asc' or 'desc'") from exc
    return MovieSort(field=field, order=order)


class CatalogQuery:
    def __init__(self, store: Datastore):
        self.store = store

    async def get_by_id(self, movie_id: Any) -> Movie:
        movie = await self.store.get_movie(parse_id(movie_id, "movie ID"))
        if movie is None:
            raise NotFound("Movie not found")
        return movie

    async def create(
        self,
        title: Optional[str],
        genre: Optional[list[str]] = None,
        release_year: Optional[int] = None,
        director: Optional[str] = None,
        cast: Optional[list[str]] = None,
        synopsis: Optional[str] = None,
        poster_url: Optional[str] = None,
    ) -> Movie:
        title = strip_or_none(title)
        if title is None:
            raise InvalidArgument("Title is required")
        if await self.store.get_movie_by_title(title) is not None:
            raise Conflict("Movie with this title already exists")

        new_movie = NewMovie(
            title=title,
            genre=list(genre or []),
            release_year=release_year,
            director=director,
            cast=list(cast or []),
            synopsis=synopsis,
            poster_url=poster_url,
        )
        try:
            movie = await self.store.insert_movie(new_movie)
        except DuplicateEntryError as exc:
            raise Conflict("Movie with this title already exists") from exc
        logger.info(f"created movie {movie.id} ({movie.title})")
        return movie

    async def list(
        self, movie_filter: MovieFilter, sort: MovieSort, page: int, page_size: int
    ) -> tuple[list[Movie], int]:
        request = page_request(page, page_size)
        movies = await self.store.find_movies(
            movie_filter, sort, offset=request.offset, limit=request.page_size
        )
        total = await self.store.count_movies(movie_filter)
        return movies, total
