from __future__ import annotations
from datetime import datetime
from ..extensions import db


class Note(db.Model):
    """Anotação do quadro; posição em pixels já alinhada à grade."""
    __tablename__ = "notes"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    # documento do editor (opaco para o servidor)
    content = db.Column(db.JSON, nullable=True)
    is_private = db.Column(db.Boolean, default=False, nullable=False)

    position_x = db.Column(db.Integer, default=0, nullable=False)
    position_y = db.Column(db.Integer, default=0, nullable=False)

    sector_id = db.Column(db.Integer, db.ForeignKey("sectors.id"), nullable=True, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    attachments = db.relationship(
        "NoteAttachment", backref="note", cascade="all, delete-orphan", lazy="select"
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "is_private": self.is_private,
            "position_x": self.position_x,
            "position_y": self.position_y,
            "sector_id": self.sector_id,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat(timespec="seconds") if self.created_at else None,
            "attachments": [a.to_dict() for a in self.attachments],
        }


class NoteAttachment(db.Model):
    __tablename__ = "note_attachments"

    id = db.Column(db.Integer, primary_key=True)
    note_id = db.Column(db.Integer, db.ForeignKey("notes.id"), nullable=False, index=True)

    file_name = db.Column(db.String(255), nullable=False)  # nome original
    file_path = db.Column(db.String(400), nullable=False)  # {note_id}/{token}_{nome}
    file_type = db.Column(db.String(120), nullable=True)
    file_size = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "note_id": self.note_id,
            "file_name": self.file_name,
            "file_path": self.file_path,
            "file_type": self.file_type,
            "file_size": self.file_size,
        }
