"""
Projeções do painel (somente leitura).

As funções recebem linhas já carregadas (objetos com atributos, como as
linhas do SQLAlchemy) e devolvem dicionários prontos para JSON.
"""
from __future__ import annotations

from collections import OrderedDict

from .completion import percentage, bucket

DASHBOARD_FREQUENCIES = ("diaria", "semanal", "quinzenal", "mensal")


def _counter() -> dict:
    return {"completed": 0, "pending": 0, "total": 0}


def _finish(counter: dict) -> dict:
    pct = percentage(counter["completed"], counter["total"])
    counter["percentage"] = pct
    counter["bucket"] = bucket(pct)
    return counter


def empty_breakdown() -> dict:
    return OrderedDict((f, _counter()) for f in DASHBOARD_FREQUENCIES)


def routine_frequency_map(routines) -> dict:
    return {r.id: r.frequency for r in routines if r.frequency in DASHBOARD_FREQUENCIES}


def _breakdown(tasks, freq_map: dict) -> tuple[dict, dict]:
    frequencies = empty_breakdown()
    totals = _counter()
    for t in tasks:
        freq = freq_map.get(t.routine_id) if t.routine_id else None
        if not freq:
            continue
        key = "completed" if t.status == "concluida" else "pending"
        frequencies[freq]["total"] += 1
        frequencies[freq][key] += 1
        totals["total"] += 1
        totals[key] += 1
    for counter in frequencies.values():
        _finish(counter)
    return frequencies, _finish(totals)


def _group(tasks, attr: str) -> dict:
    grouped: dict = {}
    for t in tasks:
        grouped.setdefault(getattr(t, attr), []).append(t)
    return grouped


def unit_routine_status(units, routines, tasks) -> list[dict]:
    """Tarefas de rotina por unidade e frequência; unidades sem tarefas ficam de fora."""
    freq_map = routine_frequency_map(routines)
    by_unit = _group(tasks, "unit_id")

    results = []
    for unit in units:
        frequencies, totals = _breakdown(by_unit.get(unit.id, []), freq_map)
        if totals["total"] > 0:
            results.append({
                "id": unit.id,
                "name": unit.name,
                "code": unit.code,
                "frequencies": frequencies,
                "totals": totals,
            })
    return results


def responsible_routine_status(users, routines, tasks) -> list[dict]:
    freq_map = routine_frequency_map(routines)
    by_user = _group([t for t in tasks if t.assigned_to is not None], "assigned_to")

    results = []
    for user in users:
        frequencies, totals = _breakdown(by_user.get(user.id, []), freq_map)
        if totals["total"] > 0:
            results.append({
                "id": user.id,
                "name": user.display_name,
                "email": user.email,
                "frequencies": frequencies,
                "totals": totals,
            })
    return results


def units_summary(units, tasks, sector_filtered: bool = False) -> list[dict]:
    """
    Todas as tarefas por unidade. Com filtro de setor, unidades sem tarefas
    são omitidas; sem filtro, todas aparecem.
    """
    by_unit = _group(tasks, "unit_id")
    summaries = []
    for unit in units:
        unit_tasks = by_unit.get(unit.id, [])
        completed = sum(1 for t in unit_tasks if t.status == "concluida")
        total = len(unit_tasks)
        if total > 0 or not sector_filtered:
            pct = percentage(completed, total)
            summaries.append({
                "id": unit.id,
                "name": unit.name,
                "code": unit.code,
                "description": unit.description,
                "completed": completed,
                "pending": total - completed,
                "total": total,
                "percentage": pct,
                "bucket": bucket(pct),
            })
    return summaries


def overall_stats(routine_count: int, tasks) -> dict:
    total = len(tasks)
    completed = sum(1 for t in tasks if t.status == "concluida")
    pct = percentage(completed, total)
    return {
        "routineCount": routine_count,
        "taskCount": total,
        "completed": completed,
        "pending": total - completed,
        "percentage": pct,
        "bucket": bucket(pct),
    }


def frequency_summary(routines, tasks) -> dict:
    """Tarefas de rotina agrupadas só por frequência (cards de frequência)."""
    frequencies, totals = _breakdown(tasks, routine_frequency_map(routines))
    return {"frequencies": frequencies, "totals": totals}
