from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from ...errors import ValidationFailed
from ...extensions import csrf
from ...models import Routine
from ...utils.completion import checkin_summary
from ...utils.forms import json_payload, load_form, id_list
from ...utils.security import require_active, require_manager
from ...utils.uploads import send_blob
from ..tasks import services as task_services
from .forms import (
    RoutineForm, RoutineUpdateForm, OpenPeriodForm, CommentForm, ChecklistItemForm,
    ChecklistToggleForm, BulkCompleteForm,
)
from . import services

bp = Blueprint("routines", __name__, url_prefix="/api/routines")
csrf.exempt(bp)


@bp.get("/")
@login_required
@require_active
def list_routines():
    unit_id = request.args.get("unit_id", type=int)
    sector_id = request.args.get("sector_id", type=int)
    frequency = (request.args.get("frequency") or "").strip()

    q = Routine.query.filter_by(is_active=True)
    if unit_id:
        q = q.filter_by(unit_id=unit_id)
    if sector_id:
        q = q.filter_by(sector_id=sector_id)
    if frequency:
        q = q.filter_by(frequency=frequency)

    periods = services.active_period_map()
    items = []
    for r in q.order_by(Routine.title.asc()).all():
        data = r.to_dict()
        period = periods.get(r.id)
        data["current_period"] = services.period_payload(period, with_checkins=False)
        items.append(data)
    return jsonify(items)


@bp.post("/")
@login_required
@require_manager
def create_routine():
    payload = json_payload()
    form = load_form(RoutineForm, payload)
    routine = services.create_routine(
        form.data,
        current_user.id,
        unit_ids=id_list(payload, "unit_ids") or [],
        assignee_ids=id_list(payload, "assignee_ids") or [],
    )
    data = routine.to_dict()
    data["current_period"] = services.period_payload(services.current_period(routine.id))
    return jsonify(data), 201


@bp.get("/active-periods")
@login_required
@require_active
def active_periods():
    return jsonify({
        str(routine_id): {
            "period_start": p.to_dict()["period_start"],
            "period_end": p.to_dict()["period_end"],
        }
        for routine_id, p in services.active_period_map().items()
    })


@bp.get("/<int:routine_id>")
@login_required
@require_active
def detail(routine_id: int):
    routine = services.get_routine(routine_id)
    data = routine.to_dict()
    data["assignees"] = [a.user.to_dict() for a in routine.assignees if a.user]
    data["units"] = [u.to_dict() for u in routine.units]
    data["current_period"] = services.period_payload(services.current_period(routine.id))
    return jsonify(data)


@bp.patch("/<int:routine_id>")
@login_required
@require_manager
def update(routine_id: int):
    routine = services.get_routine(routine_id)
    payload = json_payload()
    form = load_form(RoutineUpdateForm, payload)

    if "title" in payload and not (payload.get("title") or "").strip():
        raise ValidationFailed({"title": ["O título é obrigatório"]})

    changes = {name: form[name].data for name in form._fields if name in payload}
    # colunas obrigatórias: null no JSON significa "não alterar"
    for name in ("frequency", "recurrence_mode", "monthly_anchor", "skip_weekends_holidays", "is_active"):
        if changes.get(name) is None:
            changes.pop(name, None)
    if "title" in changes:
        changes["title"] = changes["title"].strip()

    services.update_routine(
        routine,
        changes,
        assignee_ids=id_list(payload, "assignee_ids"),
        unit_ids=id_list(payload, "unit_ids"),
        actor_id=current_user.id,
    )
    return jsonify(routine.to_dict())


@bp.delete("/<int:routine_id>")
@login_required
@require_manager
def delete(routine_id: int):
    routine = services.get_routine(routine_id)
    services.deactivate_routine(routine)
    return jsonify({"ok": True})


@bp.post("/<int:routine_id>/periods")
@login_required
@require_manager
def open_period(routine_id: int):
    routine = services.get_routine(routine_id)
    form = load_form(OpenPeriodForm, json_payload())
    period = services.open_period(routine, current_user.id, form.reference.data)
    return jsonify(services.period_payload(period)), 201


@bp.get("/<int:routine_id>/periods")
@login_required
@require_active
def periods(routine_id: int):
    services.get_routine(routine_id)
    return jsonify([services.period_payload(p) for p in services.active_periods(routine_id)])


@bp.get("/<int:routine_id>/current")
@login_required
@require_active
def current(routine_id: int):
    routine = services.get_routine(routine_id)
    period = services.current_period(routine.id)
    return jsonify({
        "period": services.period_payload(period),
        "frequency": routine.frequency,
        "summary": checkin_summary(period.checkins if period else []),
    })


def _routine_ids(payload: dict) -> list[int]:
    routine_ids = id_list(payload, "routine_ids")
    if not routine_ids:
        raise ValidationFailed({"routine_ids": ["Selecione ao menos uma rotina"]})
    return routine_ids


@bp.post("/bulk-complete/preview")
@login_required
@require_manager
def bulk_complete_preview():
    return jsonify(task_services.bulk_completion_preview(_routine_ids(json_payload())))


@bp.post("/bulk-complete")
@login_required
@require_manager
def bulk_complete():
    payload = json_payload()
    form = load_form(BulkCompleteForm, payload)
    result = task_services.bulk_complete_routines(_routine_ids(payload), form.resolve_all.data, current_user.id)
    return jsonify(result)


@bp.get("/<int:routine_id>/history")
@login_required
@require_active
def routine_history(routine_id: int):
    routine = services.get_routine(routine_id)
    return jsonify([h.to_dict() for h in services.history(routine)])


@bp.get("/<int:routine_id>/comments")
@login_required
@require_active
def list_comments(routine_id: int):
    routine = services.get_routine(routine_id)
    return jsonify([c.to_dict() for c in services.comments(routine)])


@bp.post("/<int:routine_id>/comments")
@login_required
@require_active
def add_comment(routine_id: int):
    routine = services.get_routine(routine_id)
    form = load_form(CommentForm, json_payload())
    comment = services.add_comment(routine, current_user.id, form.content.data.strip())
    return jsonify(comment.to_dict()), 201


@bp.get("/<int:routine_id>/checklist")
@login_required
@require_active
def list_checklist(routine_id: int):
    routine = services.get_routine(routine_id)
    return jsonify([i.to_dict() for i in services.checklist(routine)])


@bp.post("/<int:routine_id>/checklist")
@login_required
@require_active
def add_checklist_item(routine_id: int):
    routine = services.get_routine(routine_id)
    form = load_form(ChecklistItemForm, json_payload())
    item = services.add_checklist_item(routine, current_user.id, form.content.data.strip())
    return jsonify(item.to_dict()), 201


@bp.patch("/checklist/<int:item_id>")
@login_required
@require_active
def toggle_checklist_item(item_id: int):
    item = services.get_checklist_item(item_id)
    form = load_form(ChecklistToggleForm, json_payload())
    return jsonify(services.toggle_checklist_item(item, form.is_completed.data).to_dict())


@bp.delete("/checklist/<int:item_id>")
@login_required
@require_active
def delete_checklist_item(item_id: int):
    services.delete_checklist_item(services.get_checklist_item(item_id))
    return jsonify({"ok": True})


@bp.get("/<int:routine_id>/attachments")
@login_required
@require_active
def list_attachments(routine_id: int):
    routine = services.get_routine(routine_id)
    return jsonify([a.to_dict() for a in services.attachments(routine)])


@bp.post("/<int:routine_id>/attachments")
@login_required
@require_active
def add_attachments(routine_id: int):
    routine = services.get_routine(routine_id)
    files = request.files.getlist("attachments")
    if not files:
        raise ValidationFailed({"attachments": ["Nenhum arquivo enviado"]})

    failed = services.store_attachments(routine, current_user.id, files)
    body = {"attachments": [a.to_dict() for a in services.attachments(routine)]}
    if failed:
        body["warning"] = "Alguns anexos não foram enviados."
        body["failed_attachments"] = failed
    return jsonify(body), 201


@bp.get("/attachments/<int:attachment_id>")
@login_required
@require_active
def download_attachment(attachment_id: int):
    att = services.get_attachment(attachment_id)
    return send_blob(att.file_path, download_name=att.file_name)


@bp.delete("/attachments/<int:attachment_id>")
@login_required
@require_active
def delete_attachment(attachment_id: int):
    services.delete_attachment(services.get_attachment(attachment_id))
    return jsonify({"ok": True})
