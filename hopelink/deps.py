# hopelink/deps.py
from functools import lru_cache

from hopelink.core.config import settings
from hopelink.matching.matcher import IntelligentMatcher

@lru_cache(maxsize=1)
def get_repo():
    if settings.use_mongo:
        from hopelink.core.db import get_db
        from hopelink.repos.mongo import MongoRepo
        return MongoRepo(get_db())
    from hopelink.repos.inmemory import InMemoryRepo
    return InMemoryRepo()

@lru_cache(maxsize=1)
def get_matcher() -> IntelligentMatcher:
    # one matcher per process so concurrent requests share its caches
    return IntelligentMatcher(get_repo(), settings)
