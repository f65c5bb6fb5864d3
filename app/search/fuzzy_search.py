import re
from typing import Callable
from uuid import UUID

from rapidfuzz import distance, process
from unidecode import unidecode

from app.db.postgres import Datastore
from app.errors import InvalidArgument
from app.logger import logger
from app.utils import timed


def _clean_string(string):
    string = unidecode(string).lower()
    return re.sub(r"[^\x00-\x7F]", "", string)


def create_searcher(movie_ids: list[UUID], movie_titles: list[str]) -> Callable:
    ids_2_clean_titles = {
        idx: _clean_string(title) for idx, title in zip(movie_ids, movie_titles)
    }

    def search(query: str, limit: int = 10) -> list[UUID]:
        query = query.strip()
        if len(query) == 0:
            raise InvalidArgument("search query is empty")

        query = _clean_string(query)
        # https://maxbachmann.github.io/RapidFuzz/Usage/distance/JaroWinkler.html
        top_matches = process.extract(
            query,
            ids_2_clean_titles,
            limit=limit,
            scorer=distance.JaroWinkler.normalized_distance,
        )
        logger.debug(top_matches)
        return [movie_id for _, _, movie_id in top_matches]

    return search


@timed
async def get_searcher(store: Datastore) -> Callable:
    movie_ids, movie_titles = await store.get_all_movie_titles()
    return create_searcher(movie_ids, movie_titles)
