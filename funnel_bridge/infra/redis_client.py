from typing import Optional
import redis
from funnel_bridge.config import DRAFT_REDIS_URL

_redis: Optional[redis.Redis] = None

def get_redis() -> redis.Redis:
    """
    Client Redis synchrone pour le Draft Store.
    Séparé du client async de fastapi-limiter (initialisé dans le lifespan).
    """
    global _redis
    if _redis is None:
        _redis = redis.from_url(DRAFT_REDIS_URL, encoding="utf-8", decode_responses=True, socket_timeout=10)
    return _redis
