from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ...errors import Conflict, NotFound
from ...extensions import db
from ...models import (
    Routine, RoutineAssignee, RoutinePeriod, RoutineCheckin, RoutineComment, RoutineHistory,
    RoutineAttachment, ChecklistItem, Subtask, Task, Unit, User,
)
from ...models.task import DONE_STATUS
from ...utils.completion import checkin_summary
from ...utils.periods import (
    next_occurrence, period_window, scheduled_end, shift_to_business_day, start_of_day,
)
from ...utils.uploads import save_blob, delete_blob

ROUTINE_TASK_PREFIX = "[Rotina]"


def get_routine(routine_id: int) -> Routine:
    routine = db.session.get(Routine, routine_id)
    if routine is None:
        raise NotFound("Rotina não encontrada")
    return routine


def get_checkin(checkin_id: int) -> RoutineCheckin:
    checkin = db.session.get(RoutineCheckin, checkin_id)
    if checkin is None:
        raise NotFound("Checkin não encontrado")
    return checkin


def _set_units(routine: Routine, unit_ids: list[int]) -> None:
    units = Unit.query.filter(Unit.id.in_(unit_ids)).all() if unit_ids else []
    missing = set(unit_ids) - {u.id for u in units}
    if missing:
        raise NotFound(f"Unidades não encontradas: {sorted(missing)}")
    routine.units = units


def _set_assignees(routine: Routine, user_ids: list[int]) -> None:
    users = User.query.filter(User.id.in_(user_ids)).all() if user_ids else []
    missing = set(user_ids) - {u.id for u in users}
    if missing:
        raise NotFound(f"Usuários não encontrados: {sorted(missing)}")
    keep = {a.user_id: a for a in routine.assignees}
    routine.assignees = [keep.get(u.id) or RoutineAssignee(user_id=u.id) for u in users]


def create_routine(data: dict, actor_id: int, unit_ids=None, assignee_ids=None) -> Routine:
    """
    Cria a rotina. Com unidades selecionadas, o primeiro período já é aberto
    com um checkin por unidade.
    """
    routine = Routine(
        title=data["title"].strip(),
        description=(data.get("description") or "").strip() or None,
        frequency=data["frequency"],
        recurrence_mode=data.get("recurrence_mode") or "schedule",
        skip_weekends_holidays=bool(data.get("skip_weekends_holidays")),
        monthly_anchor=data.get("monthly_anchor") or "date",
        anchor_date=data.get("anchor_date"),
        unit_id=data.get("unit_id"),
        sector_id=data.get("sector_id"),
        is_active=True,
        created_by=actor_id,
    )
    db.session.add(routine)
    if unit_ids:
        _set_units(routine, unit_ids)
    if assignee_ids:
        _set_assignees(routine, assignee_ids)
    db.session.flush()
    record_history(routine.id, actor_id, "created", {"frequency": routine.frequency})
    db.session.commit()
    current_app.logger.info("Rotina %s criada (%s)", routine.id, routine.frequency)

    if unit_ids:
        open_period(routine, actor_id)
    return routine


ROUTINE_FIELDS = (
    "title", "description", "frequency", "recurrence_mode", "skip_weekends_holidays",
    "monthly_anchor", "anchor_date", "unit_id", "sector_id", "is_active",
)


def update_routine(routine: Routine, changes: dict, assignee_ids=None, unit_ids=None,
                   actor_id: int | None = None) -> Routine:
    for field in ROUTINE_FIELDS:
        if field in changes:
            setattr(routine, field, changes[field])
    if assignee_ids is not None:
        _set_assignees(routine, assignee_ids)
    if unit_ids is not None:
        _set_units(routine, unit_ids)
    record_history(routine.id, actor_id, "updated", {"fields": sorted(changes)})
    db.session.commit()
    return routine


def deactivate_routine(routine: Routine) -> None:
    routine.is_active = False
    db.session.commit()
    current_app.logger.info("Rotina %s desativada", routine.id)


# --------------------------
# Períodos
# --------------------------

def active_periods(routine_id: int) -> list[RoutinePeriod]:
    return (
        RoutinePeriod.query
        .filter_by(routine_id=routine_id, is_active=True)
        .order_by(RoutinePeriod.period_start.desc(), RoutinePeriod.id.desc())
        .all()
    )


def current_period(routine_id: int) -> RoutinePeriod | None:
    return (
        RoutinePeriod.query
        .filter_by(routine_id=routine_id, is_active=True)
        .order_by(RoutinePeriod.period_start.desc(), RoutinePeriod.id.desc())
        .first()
    )


def active_period_map() -> dict:
    """routine_id -> período ativo mais recente."""
    periods = (
        RoutinePeriod.query
        .filter_by(is_active=True)
        .order_by(RoutinePeriod.period_start.desc(), RoutinePeriod.id.desc())
        .all()
    )
    result = {}
    for p in periods:
        result.setdefault(p.routine_id, p)
    return result


def applicable_targets(routine: Routine) -> list[tuple[int, int | None]]:
    """
    Para quem o período gera checkins: (unit_id, assignee_user_id).

    - unidades configuradas: uma por unidade; o responsável lotado na unidade
      fica como assignee do checkin;
    - só responsáveis: um por responsável (unidade do usuário ou da rotina);
    - unit_id da rotina: só ela;
    - rotina sem escopo: todas as unidades folha.
    """
    if routine.units:
        by_unit = {}
        for a in routine.assignees:
            if a.user and a.user.unit_id:
                by_unit.setdefault(a.user.unit_id, a.user_id)
        return [(u.id, by_unit.get(u.id)) for u in sorted(routine.units, key=lambda u: u.name)]

    if routine.assignees:
        targets = []
        for a in routine.assignees:
            unit_id = (a.user.unit_id if a.user else None) or routine.unit_id
            if unit_id is None:
                current_app.logger.warning(
                    "Responsável %s da rotina %s sem unidade; checkin ignorado", a.user_id, routine.id
                )
                continue
            targets.append((unit_id, a.user_id))
        return targets

    if routine.unit_id:
        return [(routine.unit_id, None)]

    leaves = Unit.query.filter(Unit.parent_id.isnot(None)).order_by(Unit.name.asc()).all()
    return [(u.id, None) for u in leaves]


def open_period(routine: Routine, actor_id: int | None, reference: datetime | None = None,
                window: tuple[datetime, datetime] | None = None) -> RoutinePeriod:
    """
    "Iniciar Período": cria o período da janela corrente (ou de ``window``),
    a tarefa pai da rotina e, para cada alvo, um checkin e uma tarefa filha.
    Períodos ativos anteriores da rotina são desativados; as subtarefas da
    tarefa pai anterior são copiadas para a nova.
    """
    if not routine.is_active:
        raise Conflict("Rotina inativa")

    start, end = window or period_window(routine.frequency, reference)

    previous = active_periods(routine.id)
    if any(p.period_start == start for p in previous):
        raise Conflict("Já existe um período ativo para esta janela")
    previous_parent = period_parent_task(previous[0].id) if previous else None
    for p in previous:
        p.is_active = False

    period = RoutinePeriod(routine_id=routine.id, period_start=start, period_end=end, is_active=True)
    db.session.add(period)
    db.session.flush()

    parent = Task(
        title=f"{ROUTINE_TASK_PREFIX} {routine.title}",
        description=routine.description,
        routine_id=routine.id,
        routine_period_id=period.id,
        unit_id=routine.unit_id,
        sector_id=routine.sector_id,
        created_by=actor_id,
        start_date=start,
        due_date=end,
        status="pendente",
    )
    db.session.add(parent)
    db.session.flush()

    if previous_parent is not None:
        for s in previous_parent.subtasks:
            db.session.add(Subtask(
                task_id=parent.id, title=s.title, assigned_to=s.assigned_to, order_index=s.order_index,
            ))

    targets = applicable_targets(routine)
    for unit_id, user_id in targets:
        db.session.add(RoutineCheckin(
            routine_period_id=period.id,
            unit_id=unit_id,
            assignee_user_id=user_id,
            status="pending",
        ))
        db.session.add(Task(
            title=parent.title,
            description=routine.description,
            routine_id=routine.id,
            routine_period_id=period.id,
            parent_task_id=parent.id,
            unit_id=unit_id,
            sector_id=routine.sector_id,
            assigned_to=user_id,
            created_by=actor_id,
            start_date=start,
            due_date=end,
            status="pendente",
        ))

    record_history(routine.id, actor_id, "period_opened", {
        "period_start": start.isoformat(timespec="seconds"),
        "checkins": len(targets),
    })
    db.session.commit()
    current_app.logger.info(
        "Período %s aberto para rotina %s (%s a %s), %s checkins",
        period.id, routine.id, start.date(), end.date(), len(targets),
    )
    return period


def period_parent_task(period_id: int) -> Task | None:
    return Task.query.filter_by(routine_period_id=period_id, parent_task_id=None).first()


def schedule_anchor(routine: Routine) -> datetime | None:
    if routine.anchor_date:
        return routine.anchor_date
    first = routine.periods.order_by(RoutinePeriod.period_start.asc()).first()
    return first.period_start if first else None


def due_window(routine: Routine, now: datetime) -> tuple[datetime, datetime] | None:
    """
    Janela que o processamento agendado deve abrir agora, ou None.

    Sem período aberto, só a data base (anchor_date) inicia a rotina. Com
    período, a próxima janela abre quando começa ou quando a tarefa pai do
    período atual já foi concluída; janelas inteiras perdidas são puladas.
    """
    anchor = schedule_anchor(routine)
    skip = routine.skip_weekends_holidays
    period = current_period(routine.id)

    if period is None:
        if routine.anchor_date is None or start_of_day(routine.anchor_date) > now:
            return None
        start = start_of_day(routine.anchor_date)
        end = scheduled_end(routine.frequency, start, anchor, routine.monthly_anchor)
        if skip:
            start, end = shift_to_business_day(start, end)
    else:
        start, end = next_occurrence(routine.frequency, period.period_start, anchor, skip, routine.monthly_anchor)
        parent = period_parent_task(period.id)
        completed = parent is not None and parent.status == "concluida"
        if now < start and not completed:
            return None

    while end < now:
        start, end = next_occurrence(routine.frequency, start, anchor, skip, routine.monthly_anchor)
    return start, end


def process_recurring(now: datetime | None = None, actor_id: int | None = None) -> dict:
    """Abre o próximo período das rotinas ativas em modo schedule que estão vencidas."""
    now = now or datetime.now()
    processed = created = 0

    routines = (
        Routine.query
        .filter_by(is_active=True, recurrence_mode="schedule")
        .order_by(Routine.id.asc())
        .all()
    )
    for routine in routines:
        processed += 1
        window = due_window(routine, now)
        if window is None:
            continue
        try:
            open_period(routine, actor_id, window=window)
        except Conflict as e:
            current_app.logger.warning("Rotina %s não processada: %s", routine.id, e.message)
            continue
        created += 1

    current_app.logger.info("Rotinas recorrentes: %s processadas, %s períodos abertos", processed, created)
    return {"processed": processed, "created": created}


def period_payload(period: RoutinePeriod | None, with_checkins: bool = True) -> dict | None:
    if period is None:
        return None
    data = period.to_dict(with_checkins=with_checkins)
    data["summary"] = checkin_summary(period.checkins)
    return data


# --------------------------
# Checkins
# --------------------------

def complete_checkin(checkin: RoutineCheckin, actor_id: int, notes: str | None = None) -> RoutineCheckin:
    checkin.status = "completed"
    checkin.completed_at = datetime.utcnow()
    checkin.completed_by = actor_id
    checkin.notes = notes or None
    db.session.commit()
    return checkin


def mark_checkin_not_completed(checkin: RoutineCheckin, actor_id: int, notes: str | None = None) -> RoutineCheckin:
    checkin.status = "not_completed"
    checkin.completed_at = datetime.utcnow()
    checkin.completed_by = actor_id
    checkin.notes = notes or None
    db.session.commit()
    return checkin


def undo_checkin(checkin: RoutineCheckin) -> RoutineCheckin:
    checkin.status = "pending"
    checkin.completed_at = None
    checkin.completed_by = None
    checkin.notes = None
    db.session.commit()
    return checkin


def find_task_checkin(task: Task) -> RoutineCheckin | None:
    """
    Checkin ligado a uma tarefa de rotina, dentro do período da própria
    tarefa (tarefas avulsas com routine_id usam o período ativo): pela
    unidade e responsável, pelo responsável, senão pela unidade sem responsável.
    """
    if task.routine_period_id:
        period_id = task.routine_period_id
    else:
        period = current_period(task.routine_id)
        if period is None:
            return None
        period_id = period.id

    q = RoutineCheckin.query.filter_by(routine_period_id=period_id)
    if task.assigned_to:
        checkin = None
        if task.unit_id:
            checkin = q.filter_by(unit_id=task.unit_id, assignee_user_id=task.assigned_to).first()
        checkin = checkin or q.filter_by(assignee_user_id=task.assigned_to).first()
        if checkin:
            return checkin

    if task.unit_id:
        return q.filter_by(unit_id=task.unit_id, assignee_user_id=None).first()
    return None


def sync_checkin_from_task(task: Task, old_status: str, new_status: str,
                           actor_id: int | None, note: str | None = None) -> RoutineCheckin | None:
    """
    Reflete a mudança de status de uma tarefa de rotina no checkin correspondente.
    A tarefa pai do período não tem checkin. Não faz commit; o chamador fecha a transação.
    """
    if task.routine_period_id and task.parent_task_id is None:
        return None

    done = DONE_STATUS
    checkin = find_task_checkin(task)
    if checkin is None:
        return None

    if new_status in done and old_status != new_status:
        checkin.status = "completed" if new_status == "concluida" else "not_completed"
        checkin.completed_at = datetime.utcnow()
        checkin.completed_by = actor_id or task.assigned_to
        checkin.notes = note or None
        if task.assigned_to:
            checkin.assignee_user_id = task.assigned_to
    elif old_status in done and new_status not in done:
        checkin.status = "pending"
        checkin.completed_at = None
        checkin.completed_by = None
        checkin.notes = None
    return checkin


# --------------------------
# Histórico, comentários, checklist e anexos
# --------------------------

def record_history(routine_id: int, user_id: int | None, action_type: str, details: dict | None = None) -> None:
    """Só adiciona à sessão; quem chama faz o commit."""
    db.session.add(RoutineHistory(routine_id=routine_id, user_id=user_id, action_type=action_type, details=details))


def history(routine: Routine) -> list[RoutineHistory]:
    return (
        RoutineHistory.query
        .filter_by(routine_id=routine.id)
        .order_by(RoutineHistory.created_at.desc(), RoutineHistory.id.desc())
        .all()
    )


def comments(routine: Routine) -> list[RoutineComment]:
    return (
        RoutineComment.query
        .filter_by(routine_id=routine.id)
        .order_by(RoutineComment.created_at.desc(), RoutineComment.id.desc())
        .all()
    )


def add_comment(routine: Routine, user_id: int, content: str) -> RoutineComment:
    comment = RoutineComment(routine_id=routine.id, user_id=user_id, content=content)
    db.session.add(comment)
    record_history(routine.id, user_id, "comment", {"snippet": content[:50]})
    db.session.commit()
    return comment


def checklist(routine: Routine) -> list[ChecklistItem]:
    return (
        ChecklistItem.query
        .filter_by(routine_id=routine.id)
        .order_by(ChecklistItem.order_index.asc(), ChecklistItem.id.asc())
        .all()
    )


def get_checklist_item(item_id: int) -> ChecklistItem:
    item = db.session.get(ChecklistItem, item_id)
    if item is None:
        raise NotFound("Item não encontrado")
    return item


def add_checklist_item(routine: Routine, user_id: int, content: str) -> ChecklistItem:
    last = db.session.query(db.func.max(ChecklistItem.order_index)).filter(ChecklistItem.routine_id == routine.id).scalar()
    item = ChecklistItem(
        routine_id=routine.id, content=content, created_by=user_id,
        order_index=(last + 1) if last is not None else 0,
    )
    db.session.add(item)
    record_history(routine.id, user_id, "checklist_add", {"content": content[:50]})
    db.session.commit()
    return item


def toggle_checklist_item(item: ChecklistItem, is_completed: bool) -> ChecklistItem:
    item.is_completed = is_completed
    db.session.commit()
    return item


def delete_checklist_item(item: ChecklistItem) -> None:
    db.session.delete(item)
    db.session.commit()


def get_attachment(attachment_id: int) -> RoutineAttachment:
    att = db.session.get(RoutineAttachment, attachment_id)
    if att is None:
        raise NotFound("Anexo não encontrado")
    return att


def attachments(routine: Routine) -> list[RoutineAttachment]:
    return (
        RoutineAttachment.query
        .filter_by(routine_id=routine.id)
        .order_by(RoutineAttachment.created_at.desc(), RoutineAttachment.id.desc())
        .all()
    )


def store_attachments(routine: Routine, user_id: int, files) -> list[str]:
    """Grava os anexos um a um; devolve os nomes que falharam."""
    failed = []
    for f in files:
        if not f or not f.filename:
            continue
        try:
            meta = save_blob(f, f"rotinas/{routine.id}")
            db.session.add(RoutineAttachment(routine_id=routine.id, user_id=user_id, **meta))
            record_history(routine.id, user_id, "upload", {"file_name": meta["file_name"]})
            db.session.commit()
        except (OSError, ValueError, SQLAlchemyError):
            db.session.rollback()
            current_app.logger.exception("Falha ao enviar anexo %s da rotina %s", f.filename, routine.id)
            failed.append(f.filename)
    return failed


def delete_attachment(att: RoutineAttachment) -> None:
    path = att.file_path
    db.session.delete(att)
    db.session.commit()
    try:
        delete_blob(path)
    except (OSError, ValueError):
        current_app.logger.warning("Arquivo %s não removido do armazenamento", path)
