from typing import Any, Optional

import asyncpg
from fastapi import Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field
from starlette import status
from starlette.responses import JSONResponse

from app.auth import AuthService, get_admin_user, get_current_user
from app.catalog import CatalogQuery, parse_movie_filter, parse_movie_sort
from app.config import get_cors_origins, get_settings
from app.db.postgres import Datastore
from app.errors import AppError
from app.logger import logger
from app.media import MAX_POSTER_BYTES, MediaUploadService
from app.models import User
from app.ratings import RatingAggregator
from app.reviews import ReviewRegistry
from app.search.fuzzy_search import get_searcher
from app.users import ProfileDirectory
from app.utils import MAX_PAGE, page_request, paginate, timed, to_json
from app.watchlist import WatchlistRegistry

MAX_PAGE_SIZE = 100

app = FastAPI(title="movie-catalog")
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)


class RequestParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RegisterParams(RequestParams):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginParams(RequestParams):
    email: Optional[str] = None
    password: Optional[str] = None


class MovieParams(RequestParams):
    title: Optional[str] = None
    genre: list[str] = []
    release_year: Optional[int] = Field(default=None, alias="releaseYear")
    director: Optional[str] = None
    cast: list[str] = []
    synopsis: Optional[str] = None
    poster_url: Optional[str] = Field(default=None, alias="posterUrl")


class ReviewParams(RequestParams):
    rating: Any = None
    review_text: Optional[str] = Field(default="", alias="reviewText")


class WatchlistParams(RequestParams):
    movie_id: Optional[str] = Field(default=None, alias="movieId")


class ProfileParams(RequestParams):
    username: Optional[str] = None
    email: Optional[str] = None
    profile_picture: Optional[str] = Field(default=None, alias="profilePicture")


def install_services(state, store, secret_key: str, token_max_age: int) -> None:
    """Wire the catalog services on top of a datastore."""
    aggregator = RatingAggregator(store)
    state.store = store
    state.auth_service = AuthService(store, secret_key, token_max_age)
    state.catalog = CatalogQuery(store)
    state.reviews = ReviewRegistry(store, aggregator)
    state.watchlist = WatchlistRegistry(store)
    state.profiles = ProfileDirectory(store, state.reviews)
    state.media = MediaUploadService()


@app.on_event("startup")
@timed
async def startup_event():
    settings = get_settings()
    app.state.pool = await asyncpg.create_pool(settings.postgres_uri)
    install_services(
        app.state, Datastore(app.state.pool), settings.secret_key, settings.token_max_age
    )


@app.on_event("shutdown")
async def shutdown_event():
    await app.state.pool.close()


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.debug(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse({"message": exc.message}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    return JSONResponse(
        {"message": f"Invalid request: {details}"}, status_code=status.HTTP_400_BAD_REQUEST
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} crashed: {exc!r}")
    return JSONResponse(
        {"message": "Internal server error"}, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
    )


@app.post("/api/auth/register")
@timed
async def register(request: Request, body: RegisterParams) -> JSONResponse:
    auth_service: AuthService = request.app.state.auth_service
    token, user = await auth_service.register(body.username, body.email, body.password)
    return JSONResponse(
        {"message": "User registered successfully", "token": token, "user": to_json(user.profile())},
        status_code=status.HTTP_201_CREATED,
    )


@app.post("/api/auth/login")
@timed
async def login(request: Request, body: LoginParams) -> JSONResponse:
    auth_service: AuthService = request.app.state.auth_service
    token, user = await auth_service.login(body.email, body.password)
    return JSONResponse(
        {"message": "Login successful", "token": token, "user": to_json(user.profile())}
    )


@app.get("/api/movies")
@timed
async def list_movies(
    request: Request,
    genre: Optional[str] = None,
    year: Optional[str] = None,
    min_rating: Optional[str] = Query(default=None, alias="minRating"),
    sort_by: Optional[str] = Query(default=None, alias="sortBy"),
    sort_order: Optional[str] = Query(default=None, alias="sortOrder"),
    page: int = Query(default=1, ge=1, le=MAX_PAGE),
    limit: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
) -> JSONResponse:
    catalog: CatalogQuery = request.app.state.catalog
    movie_filter = parse_movie_filter(genre, year, min_rating)
    sort = parse_movie_sort(sort_by, sort_order)
    movies, total = await catalog.list(movie_filter, sort, page, limit)
    return JSONResponse(
        {
            "movies": to_json(movies),
            "pagination": to_json(paginate(page_request(page, limit), total)),
        }
    )


@app.get("/api/movies/search")
@timed
async def search_movies(
    request: Request, q: str = "", limit: int = Query(default=10, ge=1, le=50)
) -> JSONResponse:
    store = request.app.state.store
    searcher = await get_searcher(store)
    movies = await store.get_movies(searcher(q, limit=limit))
    return JSONResponse({"movies": to_json(movies)})


@app.post("/api/movies/uploadPoster")
@timed
async def upload_poster(
    request: Request,
    poster: Optional[UploadFile] = File(default=None),
    admin: User = Depends(get_admin_user),
) -> JSONResponse:
    media: MediaUploadService = request.app.state.media
    data, content_type, filename = None, None, None
    if poster is not None:
        # one extra byte is enough to tell an oversized file apart
        data = await poster.read(MAX_POSTER_BYTES + 1)
        content_type, filename = poster.content_type, poster.filename
    uploaded = await media.upload_poster(data, content_type, filename)
    return JSONResponse(
        {
            "message": "Poster uploaded successfully",
            "posterUrl": uploaded.url,
            "publicId": uploaded.public_id,
        }
    )


@app.get("/api/movies/{movie_id}")
@timed
async def get_movie(request: Request, movie_id: str) -> JSONResponse:
    catalog: CatalogQuery = request.app.state.catalog
    reviews: ReviewRegistry = request.app.state.reviews
    movie = await catalog.get_by_id(movie_id)
    movie_reviews = await reviews.all_for_movie(movie.id)
    return JSONResponse({"movie": to_json(movie), "reviews": to_json(movie_reviews)})


@app.post("/api/movies")
@timed
async def create_movie(
    request: Request, body: MovieParams, admin: User = Depends(get_admin_user)
) -> JSONResponse:
    catalog: CatalogQuery = request.app.state.catalog
    movie = await catalog.create(
        body.title,
        genre=body.genre,
        release_year=body.release_year,
        director=body.director,
        cast=body.cast,
        synopsis=body.synopsis,
        poster_url=body.poster_url,
    )
    return JSONResponse(
        {"message": "Movie created successfully", "movie": to_json(movie)},
        status_code=status.HTTP_201_CREATED,
    )


@app.get("/api/movies/{movie_id}/reviews")
@timed
async def list_movie_reviews(
    request: Request,
    movie_id: str,
    page: int = Query(default=1, ge=1, le=MAX_PAGE),
    limit: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
) -> JSONResponse:
    reviews: ReviewRegistry = request.app.state.reviews
    movie_reviews, total = await reviews.list_by_movie(movie_id, page, limit)
    return JSONResponse(
        {
            "reviews": to_json(movie_reviews),
            "pagination": to_json(paginate(page_request(page, limit), total)),
        }
    )


@app.post("/api/movies/{movie_id}/reviews")
@timed
async def add_movie_review(
    request: Request,
    movie_id: str,
    body: ReviewParams,
    user: User = Depends(get_current_user),
) -> JSONResponse:
    reviews: ReviewRegistry = request.app.state.reviews
    review = await reviews.create(user.id, movie_id, body.rating, body.review_text)
    return JSONResponse(
        {"message": "Review added successfully", "review": to_json(review)},
        status_code=status.HTTP_201_CREATED,
    )


@app.get("/api/users/{user_id}")
@timed
async def get_user_profile(
    request: Request, user_id: str, user: User = Depends(get_current_user)
) -> JSONResponse:
    profiles: ProfileDirectory = request.app.state.profiles
    profile_user, user_reviews = await profiles.get(user_id)
    return JSONResponse({"user": to_json(profile_user.profile()), "reviews": to_json(user_reviews)})


@app.put("/api/users/{user_id}")
@timed
async def update_user_profile(
    request: Request, user_id: str, body: ProfileParams, user: User = Depends(get_current_user)
) -> JSONResponse:
    profiles: ProfileDirectory = request.app.state.profiles
    updated = await profiles.update(user.id, user_id, body.model_dump(exclude_unset=True))
    return JSONResponse(
        {"message": "Profile updated successfully", "user": to_json(updated.profile())}
    )


@app.get("/api/users/{user_id}/watchlist")
@timed
async def get_user_watchlist(
    request: Request,
    user_id: str,
    page: int = Query(default=1, ge=1, le=MAX_PAGE),
    limit: int = Query(default=10, ge=1, le=MAX_PAGE_SIZE),
    user: User = Depends(get_current_user),
) -> JSONResponse:
    watchlist: WatchlistRegistry = request.app.state.watchlist
    items, total = await watchlist.list(user.id, user_id, page, limit)
    return JSONResponse(
        {
            "watchlist": to_json(items),
            "pagination": to_json(paginate(page_request(page, limit), total)),
        }
    )


@app.post("/api/users/{user_id}/watchlist")
@timed
async def add_to_watchlist(
    request: Request, user_id: str, body: WatchlistParams, user: User = Depends(get_current_user)
) -> JSONResponse:
    watchlist: WatchlistRegistry = request.app.state.watchlist
    item = await watchlist.add(user.id, user_id, body.movie_id)
    return JSONResponse(
        {"message": "Movie added to watchlist successfully", "watchlistItem": to_json(item)},
        status_code=status.HTTP_201_CREATED,
    )


@app.delete("/api/users/{user_id}/watchlist/{movie_id}")
@timed
async def remove_from_watchlist(
    request: Request, user_id: str, movie_id: str, user: User = Depends(get_current_user)
) -> JSONResponse:
    watchlist: WatchlistRegistry = request.app.state.watchlist
    await watchlist.remove(user.id, user_id, movie_id)
    return JSONResponse({"message": "Movie removed from watchlist successfully"})
