from __future__ import annotations

import json

from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from wtforms import StringField, BooleanField, IntegerField, FloatField
from wtforms.validators import DataRequired, Length, Optional, InputRequired

from ...errors import NotFound, ValidationFailed
from ...extensions import csrf, db
from ...models import NoteAttachment
from ...utils.forms import ApiForm, json_payload, load_form
from ...utils.security import require_active
from ...utils.uploads import send_blob, public_url
from . import services

bp = Blueprint("notes", __name__, url_prefix="/api/notes")
csrf.exempt(bp)


class NoteForm(ApiForm):
    title = StringField("Título", validators=[DataRequired(message="O título é obrigatório"), Length(max=200)])
    is_private = BooleanField("Privada")
    sector_id = IntegerField("Setor", validators=[Optional()])


class NoteUpdateForm(NoteForm):
    title = StringField("Título", validators=[Optional(), Length(min=1, max=200)])


class MoveForm(ApiForm):
    dx = FloatField("dx", validators=[InputRequired()])
    dy = FloatField("dy", validators=[InputRequired()])


def _request_payload() -> dict:
    """JSON ou multipart (com 'content' serializado em JSON)."""
    if request.is_json:
        return json_payload()
    payload = request.form.to_dict()
    if payload.get("is_private") in ("false", "0", ""):
        payload["is_private"] = False
    raw = payload.get("content")
    if raw:
        try:
            payload["content"] = json.loads(raw)
        except ValueError:
            raise ValidationFailed({"content": ["Conteúdo inválido"]})
    return payload


def _attachment(attachment_id: int) -> NoteAttachment:
    att = db.session.get(NoteAttachment, attachment_id)
    if att is None:
        raise NotFound("Anexo não encontrado")
    services.get_note(att.note_id, current_user)
    return att


@bp.get("/")
@login_required
@require_active
def board():
    return jsonify(services.board(current_user, request.args.get("sector_id", type=int)))


@bp.post("/")
@login_required
@require_active
def create():
    payload = _request_payload()
    form = load_form(NoteForm, payload)
    data = dict(form.data, content=payload.get("content"))

    note, failed = services.create_note(data, current_user, request.files.getlist("attachments"))
    body = note.to_dict()
    if failed:
        body["warning"] = services.ATTACHMENTS_FAILED
        body["failed_attachments"] = failed
    return jsonify(body), 201


@bp.patch("/<int:note_id>")
@login_required
@require_active
def update(note_id: int):
    note = services.get_note(note_id, current_user)
    services.check_can_edit(note, current_user)

    payload = _request_payload()
    form = load_form(NoteUpdateForm, payload)
    if "title" in payload and not (payload.get("title") or "").strip():
        raise ValidationFailed({"title": ["O título é obrigatório"]})

    changes = {}
    if "title" in payload:
        changes["title"] = form.title.data.strip()
    if "is_private" in payload:
        changes["is_private"] = bool(form.is_private.data)
    if "content" in payload:
        changes["content"] = payload.get("content")

    services.update_note(note, changes)
    return jsonify(note.to_dict())


@bp.post("/<int:note_id>/move")
@login_required
@require_active
def move(note_id: int):
    note = services.get_note(note_id, current_user)
    form = load_form(MoveForm, json_payload())
    services.move_note(note, form.dx.data, form.dy.data, current_user, request.args.get("sector_id", type=int))
    return jsonify({"id": note.id, "position_x": note.position_x, "position_y": note.position_y})


@bp.delete("/<int:note_id>")
@login_required
@require_active
def delete(note_id: int):
    note = services.get_note(note_id, current_user)
    services.check_can_edit(note, current_user)
    services.delete_note(note)
    return jsonify({"ok": True})


@bp.post("/<int:note_id>/attachments")
@login_required
@require_active
def add_attachments(note_id: int):
    note = services.get_note(note_id, current_user)
    services.check_can_edit(note, current_user)
    files = request.files.getlist("attachments")
    if not files:
        raise ValidationFailed({"attachments": ["Nenhum arquivo enviado"]})

    failed = services.store_attachments(note, files)
    body = {"attachments": [a.to_dict() for a in note.attachments]}
    if failed:
        body["warning"] = "Alguns anexos não foram enviados."
        body["failed_attachments"] = failed
    return jsonify(body), 201


@bp.get("/attachments/<int:attachment_id>")
@login_required
@require_active
def download(attachment_id: int):
    att = _attachment(attachment_id)
    return send_blob(att.file_path, download_name=att.file_name)


@bp.get("/attachments/<int:attachment_id>/url")
@login_required
@require_active
def attachment_url(attachment_id: int):
    att = _attachment(attachment_id)
    return jsonify({"url": public_url(att.file_path)})


@bp.delete("/attachments/<int:attachment_id>")
@login_required
@require_active
def delete_attachment(attachment_id: int):
    att = _attachment(attachment_id)
    services.check_can_edit(att.note, current_user)
    services.delete_attachment(att)
    return jsonify({"ok": True})


@bp.get("/files/<path:file_path>")
@login_required
@require_active
def file(file_path: str):
    return send_blob(file_path)
