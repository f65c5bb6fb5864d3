"""
Functions to interact with PostgreSQL database.
"""

from typing import Any, Optional
from uuid import UUID

import asyncpg

from app.errors import DuplicateEntryError
from app.models import (Movie, MovieFilter, MovieSort, MovieSummary, NewMovie,
                        Review, ReviewerProfile, ReviewWithMovie,
                        ReviewWithUser, SortField, SortOrder, User,
                        WatchlistEntry, WatchlistItem, WatchlistMovie)

MOVIE_COLUMNS = """
    movie_id, title, genre, release_year, director, movie_cast,
    synopsis, poster_url, average_rating, created_at, updated_at
"""
USER_COLUMNS = "user_id, username, email, password_hash, profile_picture, is_admin, join_date"
REVIEW_COLUMNS = "review_id, user_id, movie_id, rating, review_text, review_timestamp"
WATCHLIST_COLUMNS = "entry_id, user_id, movie_id, date_added"

SORT_COLUMNS = {
    SortField.TITLE: "title",
    SortField.RELEASE_YEAR: "release_year",
    SortField.AVERAGE_RATING: "average_rating",
    SortField.CREATED_AT: "created_at",
    SortField.UPDATED_AT: "updated_at",
}

UPDATABLE_USER_COLUMNS = ("username", "email", "profile_picture")


def build_movie_filter(movie_filter: MovieFilter) -> tuple[str, list[Any]]:
    """Translate a movie filter into a WHERE clause and its positional arguments."""
    clauses = []
    args: list[Any] = []
    if movie_filter.genres:
        args.append(list(movie_filter.genres))
        clauses.append(f"genre && ${len(args)}::text[]")
    if movie_filter.year is not None:
        args.append(movie_filter.year)
        clauses.append(f"release_year = ${len(args)}")
    if movie_filter.min_rating is not None:
        args.append(movie_filter.min_rating)
        clauses.append(f"average_rating >= ${len(args)}")
    if not clauses:
        return "", args
    return "WHERE " + " AND ".join(clauses), args


def build_movie_order(sort: MovieSort) -> str:
    direction = "DESC" if sort.order is SortOrder.DESC else "ASC"
    return f"ORDER BY {SORT_COLUMNS[sort.field]} {direction} NULLS LAST, movie_id"


def _row_to_movie(row) -> Movie:
    return Movie(
        id=row["movie_id"],
        title=row["title"],
        genre=list(row["genre"] or []),
        release_year=row["release_year"],
        director=row["director"],
        cast=list(row["movie_cast"] or []),
        synopsis=row["synopsis"],
        poster_url=row["poster_url"],
        average_rating=float(row["average_rating"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_user(row) -> User:
    return User(
        id=row["user_id"],
        username=row["username"],
        email=row["email"],
        password_hash=row["password_hash"],
        profile_picture=row["profile_picture"],
        is_admin=row["is_admin"],
        join_date=row["join_date"],
    )


def _review_fields(row) -> dict[str, Any]:
    return dict(
        id=row["review_id"],
        user_id=row["user_id"],
        movie_id=row["movie_id"],
        rating=row["rating"],
        review_text=row["review_text"],
        timestamp=row["review_timestamp"],
    )


def _row_to_review(row) -> Review:
    return Review(**_review_fields(row))


def _row_to_watchlist_movie(row) -> Optional[WatchlistMovie]:
    if row["title"] is None:
        return None
    return WatchlistMovie(
        id=row["movie_id"],
        title=row["title"],
        poster_url=row["poster_url"],
        release_year=row["release_year"],
        director=row["director"],
        genre=list(row["genre"] or []),
        average_rating=float(row["average_rating"]),
    )


def _row_to_watchlist_entry(row) -> WatchlistEntry:
    return WatchlistEntry(
        id=row["entry_id"],
        user_id=row["user_id"],
        movie_id=row["movie_id"],
        date_added=row["date_added"],
    )


class Datastore:
    """Catalog persistence on top of an asyncpg connection pool."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def _execute_file(self, path: str) -> None:
        async with self.pool.acquire() as connection:
            with open(path, "r") as sql_file:
                await connection.execute(sql_file.read())

    async def create_users_table(self) -> None:
        await self._execute_file("./sql/create_users.sql")

    async def create_movies_table(self) -> None:
        await self._execute_file("./sql/create_movies.sql")

    async def create_reviews_table(self) -> None:
        await self._execute_file("./sql/create_reviews.sql")

    async def create_watchlist_table(self) -> None:
        await self._execute_file("./sql/create_watchlist.sql")

    # movies

    async def insert_movie(self, movie: NewMovie) -> Movie:
        async with self.pool.acquire() as connection:
            try:
                row = await connection.fetchrow(
                    f"""
                    INSERT INTO movies (
                        title, genre, release_year, director,
                        movie_cast, synopsis, poster_url)
                    VALUES ($1, $2, $3, $4, $5, $6, $7)
                    RETURNING {MOVIE_COLUMNS}
                """,
                    *movie,
                )
            except asyncpg.UniqueViolationError as exc:
                raise DuplicateEntryError(exc.constraint_name) from exc
        return _row_to_movie(row)

    async def insert_movies(self, movies: list[NewMovie]) -> None:
        """Bulk insert, silently skipping titles that already exist."""
        async with self.pool.acquire() as connection:
            await connection.executemany(
                """
                INSERT INTO movies (
                    title, genre, release_year, director,
                    movie_cast, synopsis, poster_url)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                ON CONFLICT DO NOTHING
            """,
                [tuple(movie) for movie in movies],
            )

    async def count_all_movies(self) -> int:
        async with self.pool.acquire() as connection:
            return await connection.fetchval("SELECT count(*) FROM movies")

    async def get_movie(self, movie_id: UUID) -> Optional[Movie]:
        async with self.pool.acquire() as connection:
            row = await connection.fetchrow(
                f"SELECT {MOVIE_COLUMNS} FROM movies WHERE movie_id = $1", movie_id
            )
        return _row_to_movie(row) if row is not None else None

    async def get_movie_by_title(self, title: str) -> Optional[Movie]:
        async with self.pool.acquire() as connection:
            row = await connection.fetchrow(
                f"SELECT {MOVIE_COLUMNS} FROM movies WHERE title = $1", title
            )
        return _row_to_movie(row) if row is not None else None

    async def is_movie_present(self, movie_id: UUID) -> bool:
        async with self.pool.acquire() as connection:
            return bool(
                await connection.fetchval("SELECT 1 FROM movies WHERE movie_id = $1", movie_id)
            )

    async def find_movies(
        self, movie_filter: MovieFilter, sort: MovieSort, offset: int, limit: int
    ) -> list[Movie]:
        where, args = build_movie_filter(movie_filter)
        query = f"""
            SELECT {MOVIE_COLUMNS} FROM movies {where}
            {build_movie_order(sort)}
            OFFSET ${len(args) + 1} LIMIT ${len(args) + 2}
        """
        async with self.pool.acquire() as connection:
            rows = await connection.fetch(query, *args, offset, limit)
        return [_row_to_movie(row) for row in rows]

    async def count_movies(self, movie_filter: MovieFilter) -> int:
        where, args = build_movie_filter(movie_filter)
        async with self.pool.acquire() as connection:
            return await connection.fetchval(f"SELECT count(*) FROM movies {where}", *args)

    async def get_movies(self, movie_ids: list[UUID]) -> list[Movie]:
        """Fetch movies keeping the order of `movie_ids`, unknown ids are skipped."""
        async with self.pool.acquire() as connection:
            rows = await connection.fetch(
                f"SELECT {MOVIE_COLUMNS} FROM movies WHERE movie_id = ANY($1::uuid[])",
                movie_ids,
            )
        id_2_movie = {row["movie_id"]: _row_to_movie(row) for row in rows}
        return [id_2_movie[idx] for idx in movie_ids if idx in id_2_movie]

    async def get_all_movie_titles(self) -> tuple[list[UUID], list[str]]:
        async with self.pool.acquire() as connection:
            rows = await connection.fetch("SELECT movie_id, title FROM movies ORDER BY title")
        movie_ids = [row["movie_id"] for row in rows]
        titles = [row["title"] for row in rows]
        return movie_ids, titles

    async def update_movie_rating(self, movie_id: UUID, average_rating: float) -> None:
        async with self.pool.acquire() as connection:
            await connection.execute(
                "UPDATE movies SET average_rating = $1, updated_at = now() WHERE movie_id = $2",
                average_rating,
                movie_id,
            )

    # reviews

    async def get_user_movie_review(self, user_id: UUID, movie_id: UUID) -> Optional[Review]:
        async with self.pool.acquire() as connection:
            row = await connection.fetchrow(
                f"SELECT {REVIEW_COLUMNS} FROM reviews WHERE user_id = $1 AND movie_id = $2",
                user_id,
                movie_id,
            )
        return _row_to_review(row) if row is not None else None

    async def insert_review(
        self, user_id: UUID, movie_id: UUID, rating: int, review_text: str
    ) -> Review:
        async with self.pool.acquire() as connection:
            try:
                row = await connection.fetchrow(
                    f"""
                    INSERT INTO reviews (user_id, movie_id, rating, review_text)
                    VALUES ($1, $2, $3, $4)
                    RETURNING {REVIEW_COLUMNS}
                """,
                    user_id,
                    movie_id,
                    rating,
                    review_text,
                )
            except asyncpg.UniqueViolationError as exc:
                raise DuplicateEntryError(exc.constraint_name) from exc
        return _row_to_review(row)

    async def get_movie_ratings(self, movie_id: UUID) -> list[int]:
        async with self.pool.acquire() as connection:
            rows = await connection.fetch("SELECT rating FROM reviews WHERE movie_id = $1", movie_id)
        return [row["rating"] for row in rows]

    async def get_movie_reviews(
        self, movie_id: UUID, offset: int = 0, limit: Optional[int] = None
    ) -> list[ReviewWithUser]:
        async with self.pool.acquire() as connection:
            rows = await connection.fetch(
                """
                SELECT
                    r.review_id, r.user_id, r.movie_id, r.rating,
                    r.review_text, r.review_timestamp,
                    u.username, u.profile_picture
                FROM reviews r LEFT JOIN users u ON u.user_id = r.user_id
                WHERE r.movie_id = $1
                ORDER BY r.review_timestamp DESC, r.review_id
                OFFSET $2 LIMIT $3
            """,
                movie_id,
                offset,
                limit,
            )
        return [
            ReviewWithUser(
                **_review_fields(row),
                user=ReviewerProfile(
                    id=row["user_id"],
                    username=row["username"],
                    profile_picture=row["profile_picture"],
                ) if row["username"] is not None else None,
            )
            for row in rows
        ]

    async def count_movie_reviews(self, movie_id: UUID) -> int:
        async with self.pool.acquire() as connection:
            return await connection.fetchval(
                "SELECT count(*) FROM reviews WHERE movie_id = $1", movie_id
            )

    async def get_user_reviews(self, user_id: UUID) -> list[ReviewWithMovie]:
        async with self.pool.acquire() as connection:
            rows = await connection.fetch(
                """
                SELECT
                    r.review_id, r.user_id, r.movie_id, r.rating,
                    r.review_text, r.review_timestamp,
                    m.title, m.poster_url, m.release_year
                FROM reviews r LEFT JOIN movies m ON m.movie_id = r.movie_id
                WHERE r.user_id = $1
                ORDER BY r.review_timestamp DESC, r.review_id
            """,
                user_id,
            )
        return [
            ReviewWithMovie(
                **_review_fields(row),
                movie=MovieSummary(
                    id=row["movie_id"],
                    title=row["title"],
                    poster_url=row["poster_url"],
                    release_year=row["release_year"],
                ) if row["title"] is not None else None,
            )
            for row in rows
        ]

    async def get_reviewer_profile(self, user_id: UUID) -> Optional[ReviewerProfile]:
        async with self.pool.acquire() as connection:
            row = await connection.fetchrow(
                "SELECT user_id, username, profile_picture FROM users WHERE user_id = $1", user_id
            )
        if row is None:
            return None
        return ReviewerProfile(
            id=row["user_id"], username=row["username"], profile_picture=row["profile_picture"]
        )

    # watchlist

    async def get_watchlist_entry(
        self, user_id: UUID, movie_id: UUID
    ) -> Optional[WatchlistEntry]:
        async with self.pool.acquire() as connection:
            row = await connection.fetchrow(
                f"SELECT {WATCHLIST_COLUMNS} FROM watchlist WHERE user_id = $1 AND movie_id = $2",
                user_id,
                movie_id,
            )
        return _row_to_watchlist_entry(row) if row is not None else None

    async def insert_watchlist_entry(self, user_id: UUID, movie_id: UUID) -> WatchlistEntry:
        async with self.pool.acquire() as connection:
            try:
                row = await connection.fetchrow(
                    f"""
                    INSERT INTO watchlist (user_id, movie_id) VALUES ($1, $2)
                    RETURNING {WATCHLIST_COLUMNS}
                """,
                    user_id,
                    movie_id,
                )
            except asyncpg.UniqueViolationError as exc:
                raise DuplicateEntryError(exc.constraint_name) from exc
        return _row_to_watchlist_entry(row)

    async def delete_watchlist_entry(self, user_id: UUID, movie_id: UUID) -> bool:
        async with self.pool.acquire() as connection:
            deleted = await connection.fetchval(
                """
                DELETE FROM watchlist WHERE user_id = $1 AND movie_id = $2
                RETURNING entry_id
            """,
                user_id,
                movie_id,
            )
        return deleted is not None

    async def get_watchlist_movie(self, movie_id: UUID) -> Optional[WatchlistMovie]:
        async with self.pool.acquire() as connection:
            row = await connection.fetchrow(
                """
                SELECT movie_id, title, poster_url, release_year, director, genre, average_rating
                FROM movies WHERE movie_id = $1
            """,
                movie_id,
            )
        return _row_to_watchlist_movie(row) if row is not None else None

    async def get_watchlist(self, user_id: UUID, offset: int, limit: int) -> list[WatchlistItem]:
        async with self.pool.acquire() as connection:
            rows = await connection.fetch(
                """
                SELECT
                    w.entry_id, w.user_id, w.movie_id, w.date_added,
                    m.title, m.poster_url, m.release_year, m.director,
                    m.genre, m.average_rating
                FROM watchlist w LEFT JOIN movies m ON m.movie_id = w.movie_id
                WHERE w.user_id = $1
                ORDER BY w.date_added DESC, w.entry_id
                OFFSET $2 LIMIT $3
            """,
                user_id,
                offset,
                limit,
            )
        return [
            WatchlistItem(
                **vars(_row_to_watchlist_entry(row)), movie=_row_to_watchlist_movie(row)
            )
            for row in rows
        ]

    async def count_watchlist(self, user_id: UUID) -> int:
        async with self.pool.acquire() as connection:
            return await connection.fetchval(
                "SELECT count(*) FROM watchlist WHERE user_id = $1", user_id
            )

    # users

    async def insert_user(self, username: str, email: str, password_hash: str) -> User:
        async with self.pool.acquire() as connection:
            try:
                row = await connection.fetchrow(
                    f"""
                    INSERT INTO users (username, email, password_hash)
                    VALUES ($1, $2, $3)
                    RETURNING {USER_COLUMNS}
                """,
                    username,
                    email,
                    password_hash,
                )
            except asyncpg.UniqueViolationError as exc:
                raise DuplicateEntryError(exc.constraint_name) from exc
        return _row_to_user(row)

    async def get_user(self, user_id: UUID) -> Optional[User]:
        async with self.pool.acquire() as connection:
            row = await connection.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE user_id = $1", user_id
            )
        return _row_to_user(row) if row is not None else None

    async def get_user_by_email(self, email: str) -> Optional[User]:
        async with self.pool.acquire() as connection:
            row = await connection.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE email = $1", email
            )
        return _row_to_user(row) if row is not None else None

    async def get_user_by_username(self, username: str) -> Optional[User]:
        async with self.pool.acquire() as connection:
            row = await connection.fetchrow(
                f"SELECT {USER_COLUMNS} FROM users WHERE username = $1", username
            )
        return _row_to_user(row) if row is not None else None

    async def update_user(self, user_id: UUID, changes: dict[str, Any]) -> Optional[User]:
        columns = [column for column in UPDATABLE_USER_COLUMNS if column in changes]
        if not columns:
            return await self.get_user(user_id)
        assignments = ", ".join(f"{column} = ${i + 2}" for i, column in enumerate(columns))
        async with self.pool.acquire() as connection:
            try:
                row = await connection.fetchrow(
                    f"UPDATE users SET {assignments} WHERE user_id = $1 RETURNING {USER_COLUMNS}",
                    user_id,
                    *(changes[column] for column in columns),
                )
            except asyncpg.UniqueViolationError as exc:
                raise DuplicateEntryError(exc.constraint_name) from exc
        return _row_to_user(row) if row is not None else None

    async def set_user_admin(self, username: str, is_admin: bool) -> bool:
        async with self.pool.acquire() as connection:
            updated = await connection.fetchval(
                "UPDATE users SET is_admin = $1 WHERE username = $2 RETURNING user_id",
                is_admin,
                username,
            )
        return updated is not None
