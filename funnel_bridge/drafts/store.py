"""
Draft Store: brouillons de checkout à usage unique, stockés dans Redis avec TTL.

Clés:
- funnel:draft:<id>   payload JSON (expire après DRAFT_TTL_SECONDS)
- funnel:claim:<id>   marqueur de matérialisation (SET NX EX)

Le marqueur garantit qu'une seule livraison concurrente du même événement
matérialise la commande; il expire seul si le processus meurt en route.
"""
from typing import Any, Dict, Optional
import json
import logging
import secrets

import redis

from funnel_bridge import config
from funnel_bridge.exceptions import DependencyUnavailable
from funnel_bridge.infra.redis_client import get_redis

logger = logging.getLogger(__name__)

DRAFT_PREFIX = "funnel:draft:"
CLAIM_PREFIX = "funnel:claim:"


class DraftStore:
    def __init__(self, client: redis.Redis, ttl: int = 1800, claim_ttl: int = 120):
        self.client = client
        self.ttl = max(60, int(ttl))
        self.claim_ttl = max(10, int(claim_ttl))

    def create(self, payload: Dict[str, Any]) -> str:
        """Enregistre le payload et retourne un identifiant opaque non devinable."""
        draft_id = secrets.token_urlsafe(24)
        try:
            self.client.set(DRAFT_PREFIX + draft_id, json.dumps(payload), ex=self.ttl)
        except redis.RedisError as e:
            logger.exception("drafts.create failed")
            raise DependencyUnavailable(f"Draft store indisponible: {e}", service="redis")
        return draft_id

    def get(self, draft_id: str) -> Optional[Dict[str, Any]]:
        """Payload du brouillon, ou None s'il a expiré / été consommé."""
        if not draft_id:
            return None
        try:
            raw = self.client.get(DRAFT_PREFIX + draft_id)
        except redis.RedisError as e:
            logger.exception("drafts.get failed draft_id=%s", draft_id)
            raise DependencyUnavailable(f"Draft store indisponible: {e}", service="redis")
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.error("drafts.get corrupted payload draft_id=%s", draft_id)
            return None
        return data if isinstance(data, dict) else None

    def delete(self, draft_id: str) -> None:
        try:
            self.client.delete(DRAFT_PREFIX + draft_id, CLAIM_PREFIX + draft_id)
        except redis.RedisError as e:
            logger.exception("drafts.delete failed draft_id=%s", draft_id)
            raise DependencyUnavailable(f"Draft store indisponible: {e}", service="redis")

    def claim(self, draft_id: str) -> bool:
        """
        Pose le marqueur de matérialisation.
        True pour le premier appelant uniquement, tant que le marqueur n'a pas expiré.
        """
        try:
            return bool(self.client.set(CLAIM_PREFIX + draft_id, "1", nx=True, ex=self.claim_ttl))
        except redis.RedisError as e:
            logger.exception("drafts.claim failed draft_id=%s", draft_id)
            raise DependencyUnavailable(f"Draft store indisponible: {e}", service="redis")

    def release(self, draft_id: str) -> None:
        """Libère le marqueur après un échec, pour qu'une relivraison puisse réessayer."""
        try:
            self.client.delete(CLAIM_PREFIX + draft_id)
        except redis.RedisError:
            logger.exception("drafts.release failed draft_id=%s", draft_id)


_store: Optional[DraftStore] = None

def get_draft_store() -> DraftStore:
    global _store
    if _store is None:
        _store = DraftStore(get_redis(), ttl=config.DRAFT_TTL_SECONDS, claim_ttl=config.DRAFT_CLAIM_TTL_SECONDS)
    return _store
