from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from ...errors import ValidationFailed
from ...extensions import csrf
from ...models import Task
from ...utils.forms import json_payload, load_form, id_list
from ...utils.security import require_active
from .forms import TaskForm, TaskUpdateForm, BulkStatusForm, SubtaskForm, SubtaskUpdateForm, CommentForm
from . import services

bp = Blueprint("tasks", __name__, url_prefix="/api/tasks")
csrf.exempt(bp)


@bp.get("/")
@login_required
@require_active
def list_tasks():
    q = Task.query
    for name in ("sector_id", "unit_id", "assigned_to", "routine_id"):
        value = request.args.get(name, type=int)
        if value:
            q = q.filter(getattr(Task, name) == value)

    status = (request.args.get("status") or "").strip()
    if status:
        q = q.filter(Task.status == status)

    parent = request.args.get("parent_task_id")
    if parent == "null":
        q = q.filter(Task.parent_task_id.is_(None))
    elif parent:
        q = q.filter(Task.parent_task_id == request.args.get("parent_task_id", type=int))

    title = (request.args.get("title") or "").strip()
    if title:
        q = q.filter(Task.title.ilike(f"%{title}%"))

    tasks = q.order_by(Task.due_date.asc(), Task.id.asc()).all()
    return jsonify([t.to_dict() for t in tasks])


@bp.post("/")
@login_required
@require_active
def create():
    payload = json_payload()
    form = load_form(TaskForm, payload)
    task = services.create_task(form.data, current_user.id, unit_ids=id_list(payload, "unit_ids"))
    return jsonify(task.to_dict()), 201


@bp.get("/<int:task_id>")
@login_required
@require_active
def detail(task_id: int):
    return jsonify(services.get_task(task_id).to_dict())


@bp.get("/<int:task_id>/children")
@login_required
@require_active
def children(task_id: int):
    return jsonify(services.children_payload(services.get_task(task_id)))


@bp.patch("/<int:task_id>")
@login_required
@require_active
def update(task_id: int):
    task = services.get_task(task_id)
    payload = json_payload()
    form = load_form(TaskUpdateForm, payload)

    if "title" in payload and not (payload.get("title") or "").strip():
        raise ValidationFailed({"title": ["O título é obrigatório"]})

    changes = {
        name: form[name].data
        for name in services.TASK_FIELDS
        if name in payload
    }
    for name in ("status", "title"):
        if changes.get(name) is None:
            changes.pop(name, None)
    if "title" in changes:
        changes["title"] = changes["title"].strip()

    services.update_task(task, changes, current_user.id, form.comment.data)
    return jsonify(task.to_dict())


@bp.delete("/<int:task_id>")
@login_required
@require_active
def delete(task_id: int):
    services.delete_task(services.get_task(task_id))
    return jsonify({"ok": True})


@bp.post("/bulk-status")
@login_required
@require_active
def bulk_status():
    payload = json_payload()
    form = load_form(BulkStatusForm, payload)
    task_ids = id_list(payload, "task_ids") or []
    updated = services.bulk_update_status(task_ids, form.status.data, current_user.id)
    return jsonify({"ok": True, "updated": updated})


@bp.post("/bulk-delete")
@login_required
@require_active
def bulk_delete():
    task_ids = id_list(json_payload(), "task_ids") or []
    deleted = services.bulk_delete(task_ids)
    return jsonify({"ok": True, "deleted": deleted})


@bp.get("/<int:task_id>/subtasks")
@login_required
@require_active
def list_subtasks(task_id: int):
    task = services.get_task(task_id)
    return jsonify([s.to_dict() for s in task.subtasks])


@bp.post("/<int:task_id>/subtasks")
@login_required
@require_active
def add_subtask(task_id: int):
    task = services.get_task(task_id)
    form = load_form(SubtaskForm, json_payload())
    subtask = services.add_subtask(task, form.data, current_user.id)
    return jsonify(subtask.to_dict()), 201


@bp.get("/subtasks/mine")
@login_required
@require_active
def my_subtasks():
    return jsonify(services.user_subtasks(current_user.id))


@bp.patch("/subtasks/<int:subtask_id>")
@login_required
@require_active
def update_subtask(subtask_id: int):
    subtask = services.get_subtask(subtask_id)
    payload = json_payload()
    form = load_form(SubtaskUpdateForm, payload)

    if "title" in payload and not (payload.get("title") or "").strip():
        raise ValidationFailed({"title": ["O título é obrigatório"]})

    changes = {name: form[name].data for name in form._fields if name in payload}
    for name in ("title", "order_index", "is_completed"):
        if changes.get(name) is None:
            changes.pop(name, None)
    if "title" in changes:
        changes["title"] = changes["title"].strip()

    services.update_subtask(subtask, changes, current_user.id)
    return jsonify(subtask.to_dict())


@bp.delete("/subtasks/<int:subtask_id>")
@login_required
@require_active
def delete_subtask(subtask_id: int):
    services.delete_subtask(services.get_subtask(subtask_id))
    return jsonify({"ok": True})


@bp.get("/<int:task_id>/comments")
@login_required
@require_active
def list_comments(task_id: int):
    task = services.get_task(task_id)
    return jsonify([c.to_dict() for c in services.comments(task)])


@bp.post("/<int:task_id>/comments")
@login_required
@require_active
def add_comment(task_id: int):
    task = services.get_task(task_id)
    form = load_form(CommentForm, json_payload())
    comment = services.add_comment(task, current_user.id, form.content.data.strip())
    return jsonify(comment.to_dict()), 201


@bp.get("/<int:task_id>/history")
@login_required
@require_active
def task_history(task_id: int):
    task = services.get_task(task_id)
    return jsonify([h.to_dict() for h in services.history(task)])
