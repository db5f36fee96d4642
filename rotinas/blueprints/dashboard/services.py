from __future__ import annotations

from ...extensions import db
from ...models import Routine, Task, Unit, User
from ...realtime import QueryCache
from ...utils import dashboard as projection


def _key(name: str, sector_id) -> str:
    return f"{name}:{sector_id or 'all'}"


def _routines(sector_id):
    q = db.session.query(Routine.id, Routine.frequency).filter(Routine.is_active.is_(True))
    if sector_id:
        q = q.filter(Routine.sector_id == sector_id)
    return q.all()


def _tasks(sector_id, *columns):
    q = db.session.query(*columns)
    if sector_id:
        q = q.filter(Task.sector_id == sector_id)
    return q.all()


def unit_routine_status(cache: QueryCache, sector_id=None) -> list[dict]:
    def load():
        units = Unit.query.filter(Unit.parent_id.isnot(None)).order_by(Unit.name.asc()).all()
        tasks = _tasks(sector_id, Task.id, Task.status, Task.unit_id, Task.routine_id)
        return projection.unit_routine_status(units, _routines(sector_id), tasks)

    return cache.get(_key("unit-routine-status", sector_id), load)


def responsible_routine_status(cache: QueryCache, sector_id=None) -> list[dict]:
    def load():
        users = User.query.order_by(User.full_name.asc(), User.email.asc()).all()
        tasks = _tasks(sector_id, Task.id, Task.status, Task.assigned_to, Task.routine_id)
        return projection.responsible_routine_status(users, _routines(sector_id), tasks)

    return cache.get(_key("responsible-routine-status", sector_id), load)


def units_summary(cache: QueryCache, sector_id=None) -> list[dict]:
    def load():
        units = Unit.query.order_by(Unit.name.asc()).all()
        tasks = _tasks(sector_id, Task.id, Task.status, Task.unit_id)
        return projection.units_summary(units, tasks, sector_filtered=bool(sector_id))

    return cache.get(_key("units-summary", sector_id), load)


def overall_stats(cache: QueryCache, sector_id=None) -> dict:
    def load():
        tasks = _tasks(sector_id, Task.id, Task.status)
        return projection.overall_stats(len(_routines(sector_id)), tasks)

    return cache.get(_key("overall-stats", sector_id), load)


def frequency_summary(cache: QueryCache, sector_id=None) -> dict:
    def load():
        tasks = _tasks(sector_id, Task.id, Task.status, Task.routine_id)
        return projection.frequency_summary(_routines(sector_id), tasks)

    return cache.get(_key("frequency-summary", sector_id), load)
