"""
Authentication: password hashing, signed bearer tokens and the request
dependencies that resolve the calling user.
"""

from typing import Optional
from uuid import UUID

import bcrypt
from fastapi import Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from itsdangerous import BadSignature, URLSafeTimedSerializer

from app.db.postgres import Datastore
from app.errors import (Conflict, DuplicateEntryError, Forbidden,
                        InvalidArgument, Unauthenticated)
from app.logger import logger
from app.models import User
from app.utils import parse_id, strip_or_none

TOKEN_SALT = "movie-catalog-auth"
MIN_PASSWORD_LENGTH = 6
# bcrypt only reads the first 72 bytes, recent releases reject anything longer
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


class AuthService:
    def __init__(self, store: Datastore, secret_key: str, token_max_age: int):
        self.store = store
        self.token_max_age = token_max_age
        self.serializer = URLSafeTimedSerializer(secret_key, salt=TOKEN_SALT)

    def issue_token(self, user: User) -> str:
        return self.serializer.dumps({"user_id": str(user.id)})

    def read_token(self, token: str) -> UUID:
        """Return the user id carried by a token, SignatureExpired is a BadSignature."""
        try:
            payload = self.serializer.loads(token, max_age=self.token_max_age)
            return parse_id(payload["user_id"])
        except (BadSignature, InvalidArgument, KeyError, TypeError) as exc:
            raise Unauthenticated("Invalid or expired token") from exc

    async def authenticate(self, token: Optional[str]) -> User:
        if not token:
            raise Unauthenticated("Authentication required")
        user = await self.store.get_user(self.read_token(token))
        if user is None:
            raise Unauthenticated("Invalid or expired token")
        return user

    async def register(
        self, username: Optional[str], email: Optional[str], password: Optional[str]
    ) -> tuple[str, User]:
        username = strip_or_none(username)
        email = strip_or_none(email)
        if username is None or email is None or not password:
            raise InvalidArgument("Username, email and password are required")
        if "@" not in email:
            raise InvalidArgument("Email is not valid")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise InvalidArgument(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise InvalidArgument("Password is too long")
        email = email.lower()

        if (
            await self.store.get_user_by_email(email) is not None
            or await self.store.get_user_by_username(username) is not None
        ):
            raise Conflict("User already exists")
        password_hash = await run_in_threadpool(hash_password, password)
        try:
            user = await self.store.insert_user(username, email, password_hash)
        except DuplicateEntryError as exc:
            raise Conflict("User already exists") from exc
        logger.info(f"registered user {user.id} ({user.username})")
        return self.issue_token(user), user

    async def login(self, email: Optional[str], password: Optional[str]) -> tuple[str, User]:
        email = strip_or_none(email)
        if email is None or not password:
            raise InvalidArgument("Email and password are required")
        user = await self.store.get_user_by_email(email.lower())
        if (
            user is None
            or len(password.encode("utf-8")) > MAX_PASSWORD_BYTES
            or not await run_in_threadpool(check_password, password, user.password_hash)
        ):
            raise InvalidArgument("Invalid credentials")
        logger.info(f"user {user.id} logged in")
        return self.issue_token(user), user


def require_admin(user: User) -> User:
    if not user.is_admin:
        raise Forbidden("Admin access required")
    return user


bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> User:
    auth_service: AuthService = request.app.state.auth_service
    token = credentials.credentials if credentials is not None else None
    return await auth_service.authenticate(token)


async def get_admin_user(user: User = Depends(get_current_user)) -> User:
    return require_admin(user)
