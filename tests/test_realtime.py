from rotinas.extensions import db
from rotinas.models import Sector
from rotinas.realtime import ChangeEvent, QueryCache, TableInvalidation, InvalidationStrategy, get_cache


def test_invalidate_drops_prefixed_keys_and_calls_hooks():
    cache = QueryCache()
    calls = []
    cache.get("units-summary:all", lambda: 1)
    cache.get("units-summary:3", lambda: 2)
    cache.get("units-summary-x", lambda: 3)
    cache.on_refetch("units-summary", calls.append)

    dropped = cache.invalidate("units-summary")

    assert sorted(dropped) == ["units-summary:3", "units-summary:all"]
    assert cache.peek("units-summary-x") == 3
    assert calls == ["units-summary"]


def test_get_reloads_after_invalidation():
    cache = QueryCache()
    values = iter([1, 2])
    assert cache.get("overall-stats:all", lambda: next(values)) == 1
    assert cache.get("overall-stats:all", lambda: next(values)) == 1
    cache.invalidate("overall-stats")
    assert cache.get("overall-stats:all", lambda: next(values)) == 2


def test_invalidation_during_load_is_not_cached():
    cache = QueryCache()

    def loader():
        cache.invalidate("overall-stats")
        return "antigo"

    assert cache.get("overall-stats:all", loader) == "antigo"
    assert cache.peek("overall-stats:all") is None
    assert cache.get("overall-stats:all", lambda: "novo") == "novo"
    assert cache.peek("overall-stats:all") == "novo"


def test_checkin_change_invalidates_dependents():
    keys = TableInvalidation().keys_for(ChangeEvent(seq=1, table="routine_checkins", op="update", row_id=1))
    assert {"routine_checkins", "routine_periods", "routines", "tasks", "overall-stats"} <= keys


def test_custom_strategy():
    class Only(InvalidationStrategy):
        def keys_for(self, change):
            return {"notes"}

    cache = QueryCache(Only())
    cache.get("notes", lambda: [1])
    cache.get("tasks", lambda: [2])
    cache.handle(ChangeEvent(seq=1, table="tasks", op="insert", row_id=1))
    assert cache.peek("notes") is None
    assert cache.peek("tasks") == [2]


def test_commit_publishes_changes(ctx):
    cache = get_cache()
    cache.get("sectors", lambda: ["velho"])

    db.session.add(Sector(name="Manutenção"))
    db.session.commit()

    assert cache.peek("sectors") is None
    tables = [(e.table, e.op) for e in ctx.extensions["rotinas.changes"].events]
    assert ("sectors", "insert") in tables


def test_rollback_discards_pending(ctx):
    state = ctx.extensions["rotinas.changes"]
    before = len(state.events)
    db.session.add(Sector(name="Temporário"))
    db.session.flush()
    db.session.rollback()
    assert len(state.events) == before


def test_changes_endpoint(admin_client):
    resp = admin_client.post("/api/sectors/", json={"name": "Qualidade"})
    assert resp.status_code == 201

    body = admin_client.get("/api/changes/?since=0").get_json()
    assert any(e["table"] == "sectors" and e["op"] == "insert" for e in body["events"])

    again = admin_client.get(f"/api/changes/?since={body['last_seq']}").get_json()
    assert again["events"] == []
    assert again["last_seq"] == body["last_seq"]
