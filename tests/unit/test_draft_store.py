import fakeredis
import pytest

from funnel_bridge.drafts.store import CLAIM_PREFIX, DRAFT_PREFIX, DraftStore

@pytest.fixture()
def store():
    return DraftStore(fakeredis.FakeRedis(decode_responses=True), ttl=900, claim_ttl=60)

def test_create_get_delete(store):
    draft_id = store.create({"funnel_id": "summer", "amount_cents": 9500})
    assert len(draft_id) >= 24
    assert store.get(draft_id) == {"funnel_id": "summer", "amount_cents": 9500}
    assert 0 < store.client.ttl(DRAFT_PREFIX + draft_id) <= 900

    store.delete(draft_id)
    assert store.get(draft_id) is None

def test_ids_are_unpredictable(store):
    ids = {store.create({}) for _ in range(50)}
    assert len(ids) == 50

def test_missing_or_corrupted_draft_is_none(store):
    assert store.get("") is None
    assert store.get("unknown") is None
    store.client.set(DRAFT_PREFIX + "bad", "{not json")
    assert store.get("bad") is None

def test_claim_is_granted_once_until_released(store):
    draft_id = store.create({"x": 1})
    assert store.claim(draft_id) is True
    assert store.claim(draft_id) is False
    assert 0 < store.client.ttl(CLAIM_PREFIX + draft_id) <= 60

    store.release(draft_id)
    assert store.claim(draft_id) is True

def test_delete_also_clears_claim(store):
    draft_id = store.create({"x": 1})
    store.claim(draft_id)
    store.delete(draft_id)
    assert store.client.exists(CLAIM_PREFIX + draft_id) == 0
