from __future__ import annotations

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from ...errors import Forbidden, NotFound
from ...extensions import db
from ...models import Note, NoteAttachment
from ...utils import grid
from ...utils.uploads import save_blob, delete_blob

ATTACHMENTS_FAILED = "Nota salva, mas houve erro ao enviar alguns anexos."


def grid_size() -> tuple[int, int]:
    return current_app.config.get("NOTES_GRID_W", grid.GRID_W), current_app.config.get("NOTES_GRID_H", grid.GRID_H)


def get_note(note_id: int, user) -> Note:
    note = db.session.get(Note, note_id)
    if note is None or (note.is_private and note.created_by != user.id):
        raise NotFound("Anotação não encontrada")
    return note


def check_can_edit(note: Note, user) -> None:
    if note.created_by != user.id and not user.is_manager:
        raise Forbidden("Sem permissão para alterar esta anotação")


def visible_notes(user, sector_id=None) -> list[Note]:
    q = Note.query.filter(or_(Note.is_private.is_(False), Note.created_by == user.id))
    if sector_id:
        q = q.filter(Note.sector_id == sector_id)
    return q.order_by(Note.created_at.desc(), Note.id.desc()).all()


def board(user, sector_id=None) -> list[dict]:
    """Anotações com posições normalizadas para o quadro (não grava nada)."""
    notes = visible_notes(user, sector_id)
    grid_w, grid_h = grid_size()
    positions = grid.place_notes([(n.position_x, n.position_y) for n in notes], grid_w, grid_h)

    items = []
    for note, (x, y) in zip(notes, positions):
        data = note.to_dict()
        data["position_x"] = x
        data["position_y"] = y
        items.append(data)
    return items


def store_attachments(note: Note, files) -> list[str]:
    """Grava os anexos um a um; devolve os nomes que falharam."""
    failed = []
    for f in files:
        if not f or not f.filename:
            continue
        try:
            meta = save_blob(f, note.id)
            db.session.add(NoteAttachment(note_id=note.id, **meta))
            db.session.commit()
        except (OSError, ValueError, SQLAlchemyError):
            db.session.rollback()
            current_app.logger.exception("Falha ao enviar anexo %s da anotação %s", f.filename, note.id)
            failed.append(f.filename)
    return failed


def create_note(data: dict, user, files=()) -> tuple[Note, list[str]]:
    note = Note(
        title=data["title"].strip(),
        content=data.get("content"),
        is_private=bool(data.get("is_private")),
        sector_id=data.get("sector_id"),
        created_by=user.id,
        position_x=0,
        position_y=0,
    )
    db.session.add(note)
    db.session.commit()

    failed = store_attachments(note, files)
    return note, failed


def update_note(note: Note, changes: dict) -> Note:
    for field in ("title", "content", "is_private"):
        if field in changes:
            setattr(note, field, changes[field])
    db.session.commit()
    return note


def displayed_position(note: Note, user, sector_id=None) -> tuple[int, int]:
    notes = visible_notes(user, sector_id)
    grid_w, grid_h = grid_size()
    positions = grid.place_notes([(n.position_x, n.position_y) for n in notes], grid_w, grid_h)
    for n, pos in zip(notes, positions):
        if n.id == note.id:
            return pos
    return note.position_x, note.position_y


def move_note(note: Note, dx: float, dy: float, user, sector_id=None) -> Note:
    """O arrasto parte da posição exibida no quadro, não da gravada."""
    grid_w, grid_h = grid_size()
    base_x, base_y = displayed_position(note, user, sector_id)
    x, y = grid.drop_position(base_x, base_y, dx, dy, grid_w, grid_h)
    note.position_x = x
    note.position_y = y
    db.session.commit()
    return note


def delete_attachment(attachment: NoteAttachment) -> None:
    path = attachment.file_path
    db.session.delete(attachment)
    db.session.commit()
    try:
        delete_blob(path)
    except (OSError, ValueError):
        current_app.logger.warning("Arquivo %s não removido do armazenamento", path)


def delete_note(note: Note) -> None:
    paths = [a.file_path for a in note.attachments]
    db.session.delete(note)
    db.session.commit()
    for path in paths:
        try:
            delete_blob(path)
        except (OSError, ValueError):
            current_app.logger.warning("Arquivo %s não removido do armazenamento", path)
