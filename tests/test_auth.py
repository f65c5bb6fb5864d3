import asyncio
import time

import pytest

from app.auth import AuthService, check_password, hash_password, require_admin
from app.errors import Conflict, Forbidden, InvalidArgument, Unauthenticated


def _auth(store, max_age: int = 3600) -> AuthService:
    return AuthService(store, "test-secret", max_age)


def test_password_hashing():
    password_hash = hash_password("hunter22")
    assert password_hash != "hunter22"
    assert check_password("hunter22", password_hash)
    assert not check_password("hunter23", password_hash)


def test_register_and_login(store):
    auth = _auth(store)
    token, user = asyncio.run(auth.register("neo", "Neo@Matrix.io", "followtherabbit"))
    assert user.username == "neo"
    assert user.email == "neo@matrix.io"
    assert not user.is_admin
    assert asyncio.run(auth.authenticate(token)) is user

    login_token, logged_in = asyncio.run(auth.login("neo@matrix.io", "followtherabbit"))
    assert logged_in is user
    assert asyncio.run(auth.authenticate(login_token)) is user


def test_register_validation(store):
    auth = _auth(store)
    with pytest.raises(InvalidArgument):
        asyncio.run(auth.register("neo", None, "followtherabbit"))
    with pytest.raises(InvalidArgument):
        asyncio.run(auth.register("neo", "neo-at-matrix", "followtherabbit"))
    with pytest.raises(InvalidArgument):
        asyncio.run(auth.register("neo", "neo@matrix.io", "short"))
    assert store.users == {}


def test_register_duplicate(store):
    auth = _auth(store)
    asyncio.run(auth.register("neo", "neo@matrix.io", "followtherabbit"))
    with pytest.raises(Conflict):
        asyncio.run(auth.register("neo", "other@matrix.io", "followtherabbit"))
    with pytest.raises(Conflict):
        asyncio.run(auth.register("thomas", "neo@matrix.io", "followtherabbit"))


def test_login_wrong_password(store):
    auth = _auth(store)
    asyncio.run(auth.register("neo", "neo@matrix.io", "followtherabbit"))
    with pytest.raises(InvalidArgument):
        asyncio.run(auth.login("neo@matrix.io", "bluepill"))
    with pytest.raises(InvalidArgument):
        asyncio.run(auth.login("smith@matrix.io", "followtherabbit"))


def test_authenticate_rejects_bad_tokens(store):
    auth = _auth(store)
    user = store.add_user("trinity")
    with pytest.raises(Unauthenticated):
        asyncio.run(auth.authenticate(None))
    with pytest.raises(Unauthenticated):
        asyncio.run(auth.authenticate("not-a-token"))

    forged = AuthService(store, "other-secret", 3600).issue_token(user)
    with pytest.raises(Unauthenticated):
        asyncio.run(auth.authenticate(forged))


def test_authenticate_rejects_expired_tokens(store):
    auth = _auth(store, max_age=0)
    token = auth.issue_token(store.add_user("trinity"))
    time.sleep(1.1)
    with pytest.raises(Unauthenticated):
        asyncio.run(auth.authenticate(token))


def test_authenticate_unknown_user(store):
    auth = _auth(store)
    user = store.add_user("trinity")
    token = auth.issue_token(user)
    del store.users[user.id]
    with pytest.raises(Unauthenticated):
        asyncio.run(auth.authenticate(token))


def test_require_admin(store):
    admin = store.add_user("morpheus", is_admin=True)
    assert require_admin(admin) is admin
    with pytest.raises(Forbidden):
        require_admin(store.add_user("mouse"))
