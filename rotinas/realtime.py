"""
Alterações em tempo real.

Todo commit que insere/atualiza/remove linhas gera eventos por tabela num
``ChangeFeed``. Os assinantes recebem cada evento; o assinante padrão é o
``QueryCache`` da aplicação, que descarta as chaves afetadas (segundo uma
``InvalidationStrategy``) e dispara os ganchos de recarga registrados.

A granularidade é grossa de propósito: por tabela, nunca por linha.
"""
from __future__ import annotations

import itertools
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from flask import Flask, current_app
from sqlalchemy import event

FEED_KEY = "rotinas.changes"
CACHE_KEY = "rotinas.cache"

# chaves de consulta do painel, recarregadas em qualquer alteração
DASHBOARD_KEYS = (
    "unit-routine-status",
    "responsible-routine-status",
    "units-summary",
    "overall-stats",
    "frequency-summary",
)


@dataclass
class ChangeEvent:
    seq: int
    table: str
    op: str  # insert / update / delete
    row_id: Any
    at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "seq": self.seq,
            "table": self.table,
            "op": self.op,
            "row_id": self.row_id,
            "at": self.at.isoformat(timespec="seconds"),
        }


class InvalidationStrategy:
    """Decide quais chaves de consulta um evento invalida."""

    def keys_for(self, change: ChangeEvent) -> set[str]:
        raise NotImplementedError


class TableInvalidation(InvalidationStrategy):
    """Mapeamento por tabela: a própria tabela, dependentes e o painel."""

    DEPENDENTS = {
        "routine_checkins": ("routine_checkins", "routine_periods", "routines", "tasks"),
        "routine_periods": ("routine_periods", "routines"),
        "tasks": ("tasks", "routines"),
        "subtasks": ("subtasks", "tasks"),
        "note_attachments": ("note_attachments", "notes"),
    }

    def keys_for(self, change: ChangeEvent) -> set[str]:
        keys = set(self.DEPENDENTS.get(change.table, (change.table,)))
        keys.update(DASHBOARD_KEYS)
        return keys


class QueryCache:
    """
    Cache de resultados de consulta por chave.

    As chaves são strings hierárquicas separadas por ``:`` (ex.:
    ``units-summary:3``); invalidar ``units-summary`` derruba todas as
    variantes. Depois de invalidar, os ganchos de recarga da chave são
    chamados; sem gancho, a recarga acontece no próximo ``get``.
    """

    def __init__(self, strategy: InvalidationStrategy | None = None):
        self.strategy = strategy or TableInvalidation()
        self._data: dict[str, Any] = {}
        self._generation: dict[str, int] = {}
        self._refetch: dict[str, list[Callable[[str], None]]] = {}
        self._lock = threading.RLock()

    def _stamp(self, key: str) -> tuple[int, ...]:
        # uma geração por prefixo: "a:b:c" depende de "a", "a:b" e "a:b:c"
        parts = key.split(":")
        return tuple(self._generation.get(":".join(parts[:i]), 0) for i in range(1, len(parts) + 1))

    def get(self, key: str, loader: Callable[[], Any]) -> Any:
        with self._lock:
            if key in self._data:
                return self._data[key]
            stamp = self._stamp(key)
        value = loader()
        with self._lock:
            # invalidada durante a carga: devolve o valor sem guardar
            if self._stamp(key) == stamp:
                self._data[key] = value
        return value

    def peek(self, key: str) -> Any:
        with self._lock:
            return self._data.get(key)

    def on_refetch(self, prefix: str, hook: Callable[[str], None]) -> None:
        with self._lock:
            self._refetch.setdefault(prefix, []).append(hook)

    def invalidate(self, prefix: str) -> list[str]:
        with self._lock:
            self._generation[prefix] = self._generation.get(prefix, 0) + 1
            dropped = [k for k in self._data if k == prefix or k.startswith(prefix + ":")]
            for k in dropped:
                del self._data[k]
            hooks = list(self._refetch.get(prefix, ()))
        for hook in hooks:
            hook(prefix)
        return dropped

    def handle(self, change: ChangeEvent) -> None:
        for key in sorted(self.strategy.keys_for(change)):
            self.invalidate(key)


class _FeedState:
    def __init__(self, backlog: int):
        self.events: deque[ChangeEvent] = deque(maxlen=backlog)
        self.subscribers: list[Callable[[ChangeEvent], None]] = []
        self.counter = itertools.count(1)
        self.lock = threading.Lock()


class ChangeFeed:
    """Canal publish/subscribe de alterações, um estado por aplicação."""

    def __init__(self):
        self._listening = False

    def init_app(self, app: Flask, db) -> None:
        app.extensions[FEED_KEY] = _FeedState(app.config.get("REALTIME_BACKLOG", 500))
        if not self._listening:
            event.listen(db.session, "after_flush", _collect_changes)
            event.listen(db.session, "after_commit", self._publish_pending)
            event.listen(db.session, "after_rollback", _drop_pending)
            self._listening = True

    @staticmethod
    def _state(app: Flask | None = None) -> _FeedState | None:
        app = app or current_app
        return app.extensions.get(FEED_KEY)

    def subscribe(self, callback: Callable[[ChangeEvent], None], app: Flask | None = None) -> None:
        self._state(app).subscribers.append(callback)

    def publish(self, table: str, op: str, row_id: Any = None) -> ChangeEvent | None:
        state = self._state()
        if state is None:
            return None
        with state.lock:
            change = ChangeEvent(seq=next(state.counter), table=table, op=op, row_id=row_id)
            state.events.append(change)
            subscribers = list(state.subscribers)
        for callback in subscribers:
            try:
                callback(change)
            except Exception:
                current_app.logger.exception(
                    "Falha no assinante de alterações para %s/%s", change.table, change.op
                )
        return change

    def since(self, seq: int) -> tuple[list[ChangeEvent], int]:
        state = self._state()
        with state.lock:
            events = [e for e in state.events if e.seq > seq]
            last = state.events[-1].seq if state.events else seq
        return events, last

    def _publish_pending(self, session) -> None:
        pending = session.info.pop("rotinas_changes", None)
        if not pending:
            return
        for table, op, row_id in pending:
            self.publish(table, op, row_id)


def _row_id(obj) -> Any:
    return getattr(obj, "id", None)


def _collect_changes(session, flush_context) -> None:
    pending = session.info.setdefault("rotinas_changes", [])
    for obj in session.new:
        pending.append((obj.__tablename__, "insert", _row_id(obj)))
    for obj in session.dirty:
        if session.is_modified(obj, include_collections=False):
            pending.append((obj.__tablename__, "update", _row_id(obj)))
    for obj in session.deleted:
        pending.append((obj.__tablename__, "delete", _row_id(obj)))


def _drop_pending(session) -> None:
    session.info.pop("rotinas_changes", None)


def init_realtime(app: Flask, feed: ChangeFeed, db, strategy: InvalidationStrategy | None = None) -> QueryCache:
    feed.init_app(app, db)
    cache = QueryCache(strategy)
    app.extensions[CACHE_KEY] = cache
    feed.subscribe(cache.handle, app)
    return cache


def get_cache() -> QueryCache:
    return current_app.extensions[CACHE_KEY]
