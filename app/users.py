"""
User profiles: public view with the user's reviews, and self-service updates.
"""

from typing import Any, Optional
from uuid import UUID

from app.db.postgres import Datastore
from app.errors import Conflict, DuplicateEntryError, Forbidden, NotFound
from app.logger import logger
from app.models import ReviewWithMovie, User
from app.reviews import ReviewRegistry
from app.utils import parse_id, strip_or_none

CONFLICT_MESSAGES = {
    "users_email_key": "Email is already taken",
    "users_username_key": "Username is already taken",
}


class ProfileDirectory:
    def __init__(self, store: Datastore, reviews: ReviewRegistry):
        self.store = store
        self.reviews = reviews

    async def get(self, user_id: Any) -> tuple[User, list[ReviewWithMovie]]:
        user = await self.store.get_user(parse_id(user_id, "user ID"))
        if user is None:
            raise NotFound("User not found")
        return user, await self.reviews.list_by_user(user.id)

    async def update(self, caller_id: UUID, user_id: Any, changes: dict[str, Optional[str]]) -> User:
        """Apply `username`, `email` and `profile_picture` from `changes`.

        Empty usernames or emails are ignored, `profile_picture` may be cleared.
        """
        if str(user_id) != str(caller_id):
            raise Forbidden("You can only update your own profile")
        user = await self.store.get_user(caller_id)
        if user is None:
            raise NotFound("User not found")

        updates: dict[str, Optional[str]] = {}
        email = strip_or_none(changes.get("email"))
        if email and email.lower() != user.email:
            email = email.lower()
            if await self.store.get_user_by_email(email) is not None:
                raise Conflict(CONFLICT_MESSAGES["users_email_key"])
            updates["email"] = email
        username = strip_or_none(changes.get("username"))
        if username and username != user.username:
            if await self.store.get_user_by_username(username) is not None:
                raise Conflict(CONFLICT_MESSAGES["users_username_key"])
            updates["username"] = username
        if "profile_picture" in changes:
            updates["profile_picture"] = changes["profile_picture"]

        try:
            updated = await self.store.update_user(user.id, updates)
        except DuplicateEntryError as exc:
            raise Conflict(CONFLICT_MESSAGES.get(exc.constraint, "User already exists")) from exc
        if updated is None:
            raise NotFound("User not found")
        logger.info(f"user {user.id} updated profile fields {sorted(updates)}")
        return updated
