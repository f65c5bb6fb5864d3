import uuid

import pytest

from app.errors import InvalidArgument
from app.search.fuzzy_search import create_searcher

MOVIE_IDS = [uuid.uuid4() for _ in range(4)]
TITLES = ["Amélie", "The Matrix", "Matrix Reloaded", "Heat"]


def test_search_best_match_first():
    search = create_searcher(MOVIE_IDS, TITLES)
    assert search("the matrix", limit=2)[0] == MOVIE_IDS[1]


def test_search_ignores_accents():
    search = create_searcher(MOVIE_IDS, TITLES)
    assert search("amelie", limit=1) == [MOVIE_IDS[0]]


def test_search_limit():
    search = create_searcher(MOVIE_IDS, TITLES)
    assert len(search("matrix", limit=3)) == 3


def test_search_empty_query():
    search = create_searcher(MOVIE_IDS, TITLES)
    with pytest.raises(InvalidArgument):
        search("   ")
