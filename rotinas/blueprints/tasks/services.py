from __future__ import annotations

from datetime import datetime
from typing import Iterable

from flask import current_app

from ...errors import Conflict, NotFound, ValidationFailed
from ...extensions import db
from ...models import RoutinePeriod, Subtask, Task, TaskComment, TaskHistory
from ...models.task import DONE_STATUS
from ...utils.completion import summarize
from ...utils.periods import next_period_window, shift_to_business_day
from ..routines import services as routine_services

TASK_FIELDS = (
    "title", "description", "status", "priority", "routine_id", "unit_id",
    "sector_id", "assigned_to", "parent_task_id", "start_date", "due_date",
)


def get_task(task_id: int) -> Task:
    task = db.session.get(Task, task_id)
    if task is None:
        raise NotFound("Tarefa não encontrada")
    return task


def rollup_status(statuses: Iterable[str]) -> str:
    """
    Status da tarefa pai a partir das filhas: todas resolvidas (concluída ou
    não aplicável) -> concluida; alguma -> em_andamento; nenhuma -> pendente.
    """
    statuses = list(statuses)
    done = sum(1 for s in statuses if s in DONE_STATUS)
    if statuses and done == len(statuses):
        return "concluida"
    if done > 0:
        return "em_andamento"
    return "pendente"


def _check_dates(start, due) -> None:
    if start and due and due < start:
        raise ValidationFailed({"due_date": ["O prazo deve ser posterior ao início"]})


def create_task(data: dict, actor_id: int, unit_ids=None) -> Task:
    """Sem unidades cria uma tarefa; com unidades, uma tarefa pai e uma filha por unidade."""
    values = {k: data.get(k) for k in TASK_FIELDS}
    values["title"] = values["title"].strip()
    values["status"] = values.get("status") or "pendente"
    _check_dates(values.get("start_date"), values.get("due_date"))

    if values.get("parent_task_id"):
        get_task(values["parent_task_id"])

    task = Task(created_by=actor_id, **values)
    if task.status == "concluida":
        task.completed_at = datetime.utcnow()
    db.session.add(task)
    db.session.flush()
    record_history(task.id, actor_id, "created", {"status": task.status})

    if unit_ids:
        task.unit_id = None
        for unit_id in unit_ids:
            child = dict(values, unit_id=unit_id, parent_task_id=task.id, status="pendente")
            db.session.add(Task(created_by=actor_id, **child))
        task.status = "pendente"
        task.completed_at = None

    db.session.commit()
    return task


def _change_status(task: Task, new_status: str, actor_id: int | None, comment: str | None) -> None:
    old_status = task.status
    if old_status == new_status:
        return
    task.status = new_status
    task.completed_at = datetime.utcnow() if new_status == "concluida" else None
    record_history(task.id, actor_id, "status", {"from": old_status, "to": new_status})
    if task.routine_id:
        routine_services.sync_checkin_from_task(task, old_status, new_status, actor_id, comment)


def _in_active_period(task: Task) -> bool:
    if task.routine_period_id is None:
        return True
    period = db.session.get(RoutinePeriod, task.routine_period_id)
    return period is not None and period.is_active


def rollup_parent(parent_id: int) -> Task | None:
    """
    Recalcula o status da tarefa pai. Devolve a pai quando ela acabou de ser
    concluída e a rotina pede novo período ao concluir.
    """
    parent = db.session.get(Task, parent_id)
    if parent is None:
        return None
    children = Task.query.filter_by(parent_task_id=parent_id).all()
    if not children:
        return None

    new_status = rollup_status(c.status for c in children)
    was = parent.status
    if was == new_status:
        return None

    parent.status = new_status
    parent.completed_at = datetime.utcnow() if new_status == "concluida" else None
    current_app.logger.info("Tarefa pai %s atualizada para %s", parent.id, new_status)

    routine = parent.routine
    if (
        new_status == "concluida"
        and routine is not None
        and routine.is_active
        and routine.recurrence_mode == "on_completion"
        and parent.parent_task_id is None
        and _in_active_period(parent)
    ):
        return parent
    return None


def _open_next_periods(parents: list[Task], actor_id: int | None) -> None:
    for parent in parents:
        routine = parent.routine
        period = routine_services.current_period(routine.id)
        current_end = period.period_end if period else (parent.due_date or datetime.now())
        window = next_period_window(routine.frequency, current_end)
        if routine.skip_weekends_holidays:
            window = shift_to_business_day(*window)
        try:
            routine_services.open_period(routine, actor_id, window=window)
        except Conflict as e:
            current_app.logger.warning("Próximo período da rotina %s não aberto: %s", routine.id, e.message)


def update_task(task: Task, changes: dict, actor_id: int | None, comment: str | None = None) -> Task:
    status = changes.pop("status", None)
    for field, value in changes.items():
        setattr(task, field, value)
    _check_dates(task.start_date, task.due_date)

    completed_parents = []
    if status:
        _change_status(task, status, actor_id, comment)
        db.session.flush()
        if task.parent_task_id:
            parent = rollup_parent(task.parent_task_id)
            if parent is not None:
                completed_parents.append(parent)

    db.session.commit()
    _open_next_periods(completed_parents, actor_id)
    return task


def bulk_update_status(task_ids: list[int], status: str, actor_id: int | None) -> int:
    tasks = Task.query.filter(Task.id.in_(task_ids)).all()
    for task in tasks:
        _change_status(task, status, actor_id, None)
    db.session.flush()

    completed_parents = []
    for parent_id in sorted({t.parent_task_id for t in tasks if t.parent_task_id}):
        parent = rollup_parent(parent_id)
        if parent is not None:
            completed_parents.append(parent)

    db.session.commit()
    _open_next_periods(completed_parents, actor_id)
    return len(tasks)


def delete_task(task: Task) -> None:
    for child in list(task.children):
        db.session.delete(child)
    db.session.delete(task)
    db.session.commit()


def bulk_delete(task_ids: list[int]) -> int:
    tasks = Task.query.filter(Task.id.in_(task_ids)).all()
    for task in tasks:
        for child in list(task.children):
            db.session.delete(child)
        db.session.delete(task)
    db.session.commit()
    return len(tasks)


def children_payload(task: Task) -> dict:
    children = Task.query.filter_by(parent_task_id=task.id).order_by(Task.id.asc()).all()
    return {
        "parent": task.to_dict(),
        "children": [c.to_dict() for c in children],
        "summary": summarize(c.status in DONE_STATUS for c in children),
    }


# --------------------------
# Encerramento em lote de rotinas
# --------------------------

def _open_routine_parents(routine_ids: list[int]) -> list[Task]:
    return (
        Task.query
        .filter(Task.routine_id.in_(routine_ids), Task.parent_task_id.is_(None), Task.status != "concluida")
        .order_by(Task.id.asc())
        .all()
    )


def _pending_children(parent_ids: list[int]) -> list[Task]:
    if not parent_ids:
        return []
    return Task.query.filter(Task.parent_task_id.in_(parent_ids), Task.status.notin_(DONE_STATUS)).all()


def bulk_completion_preview(routine_ids: list[int]) -> dict:
    for routine_id in routine_ids:
        routine_services.get_routine(routine_id)
    parents = _open_routine_parents(routine_ids)
    return {
        "routines": len(routine_ids),
        "parents": len(parents),
        "pending": len(_pending_children([p.id for p in parents])),
    }


def bulk_complete_routines(routine_ids: list[int], resolve_all: bool, actor_id: int | None) -> dict:
    """
    Encerra as rotinas selecionadas: as tarefas pai abertas viram concluida.
    Com ``resolve_all`` as filhas pendentes são concluídas antes (o que também
    conclui os checkins); sem ele, as filhas ficam como estão.
    """
    for routine_id in routine_ids:
        routine_services.get_routine(routine_id)
    parent_ids = [p.id for p in _open_routine_parents(routine_ids)]
    resolved = 0
    if resolve_all:
        resolved = bulk_update_status([t.id for t in _pending_children(parent_ids)], "concluida", actor_id)
    bulk_update_status(parent_ids, "concluida", actor_id)

    for routine_id in routine_ids:
        routine_services.record_history(routine_id, actor_id, "bulk_completed", {"resolve_all": resolve_all})
    db.session.commit()
    current_app.logger.info(
        "Encerramento em lote: %s rotinas, %s tarefas pai, %s filhas resolvidas",
        len(routine_ids), len(parent_ids), resolved,
    )
    return {"routines": len(routine_ids), "parents": len(parent_ids), "resolved": resolved}


# --------------------------
# Histórico e comentários
# --------------------------

def record_history(task_id: int, user_id: int | None, action_type: str, details: dict | None = None) -> None:
    """Só adiciona à sessão; quem chama faz o commit."""
    db.session.add(TaskHistory(task_id=task_id, user_id=user_id, action_type=action_type, details=details))


def history(task: Task) -> list[TaskHistory]:
    return (
        TaskHistory.query
        .filter_by(task_id=task.id)
        .order_by(TaskHistory.created_at.desc(), TaskHistory.id.desc())
        .all()
    )


def comments(task: Task) -> list[TaskComment]:
    return (
        TaskComment.query
        .filter_by(task_id=task.id)
        .order_by(TaskComment.created_at.desc(), TaskComment.id.desc())
        .all()
    )


def add_comment(task: Task, user_id: int, content: str) -> TaskComment:
    comment = TaskComment(task_id=task.id, user_id=user_id, content=content)
    db.session.add(comment)
    record_history(task.id, user_id, "comment", {"snippet": content[:50]})
    db.session.commit()
    return comment


# --------------------------
# Subtarefas
# --------------------------

def get_subtask(subtask_id: int) -> Subtask:
    subtask = db.session.get(Subtask, subtask_id)
    if subtask is None:
        raise NotFound("Subtarefa não encontrada")
    return subtask


def add_subtask(task: Task, data: dict, actor_id: int | None) -> Subtask:
    order_index = data.get("order_index")
    if order_index is None:
        order_index = len(task.subtasks)
    subtask = Subtask(
        task_id=task.id,
        title=data["title"].strip(),
        assigned_to=data.get("assigned_to"),
        order_index=order_index,
    )
    db.session.add(subtask)
    record_history(task.id, actor_id, "subtask_add", {"title": subtask.title})
    db.session.commit()
    return subtask


def update_subtask(subtask: Subtask, changes: dict, actor_id: int | None) -> Subtask:
    for field in ("title", "assigned_to", "order_index"):
        if field in changes:
            setattr(subtask, field, changes[field])

    if "is_completed" in changes and changes["is_completed"] != subtask.is_completed:
        subtask.is_completed = changes["is_completed"]
        subtask.completed_at = datetime.utcnow() if subtask.is_completed else None
        record_history(subtask.task_id, actor_id, "subtask_toggle", {
            "title": subtask.title, "is_completed": subtask.is_completed,
        })
    db.session.commit()
    return subtask


def delete_subtask(subtask: Subtask) -> None:
    db.session.delete(subtask)
    db.session.commit()


def user_subtasks(user_id: int) -> list[dict]:
    """Subtarefas atribuídas ao usuário, com o resumo da tarefa."""
    subtasks = (
        Subtask.query
        .filter_by(assigned_to=user_id)
        .order_by(Subtask.created_at.desc(), Subtask.id.desc())
        .all()
    )
    items = []
    for s in subtasks:
        data = s.to_dict()
        data["task"] = {
            "id": s.task.id,
            "title": s.task.title,
            "unit_id": s.task.unit_id,
            "routine_id": s.task.routine_id,
        }
        items.append(data)
    return items
