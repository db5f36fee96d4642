from __future__ import annotations
from datetime import datetime
from ..extensions import db

FREQUENCY_CHOICES = ("diaria", "semanal", "quinzenal", "mensal", "anual", "customizada")

FREQUENCY_LABELS = {
    "diaria": "Diária",
    "semanal": "Semanal",
    "quinzenal": "Quinzenal",
    "mensal": "Mensal",
    "anual": "Anual",
    "customizada": "Customizada",
}

# schedule -> próximo período aberto pelo processamento agendado (flask process-recurring);
# on_completion -> próximo período ao concluir a tarefa pai
RECURRENCE_MODES = ("schedule", "on_completion")

# date -> mesmo dia do mês; weekday -> mesma n-ésima semana/dia da semana
MONTHLY_ANCHORS = ("date", "weekday")


def _iso(value):
    return value.isoformat(timespec="seconds") if value else None


def _author(user):
    return {"id": user.id, "full_name": user.full_name, "email": user.email} if user else None


routine_units = db.Table(
    "routine_units",
    db.Column("routine_id", db.Integer, db.ForeignKey("routines.id"), primary_key=True),
    db.Column("unit_id", db.Integer, db.ForeignKey("units.id"), primary_key=True),
)


class Routine(db.Model):
    """
    Obrigação recorrente (modelo). Ex.: "checagem semanal de segurança".
    Sem unit_id/unidades configuradas vale para todas as unidades folha.
    """
    __tablename__ = "routines"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)

    frequency = db.Column(db.String(20), nullable=False, index=True)
    recurrence_mode = db.Column(db.String(20), default="schedule", nullable=False)
    skip_weekends_holidays = db.Column(db.Boolean, default=False, nullable=False)
    monthly_anchor = db.Column(db.String(10), default="date", nullable=False)
    # data base do agendamento; sem ela vale o início do primeiro período
    anchor_date = db.Column(db.DateTime, nullable=True)

    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=True, index=True)
    sector_id = db.Column(db.Integer, db.ForeignKey("sectors.id"), nullable=True, index=True)

    # exclusão é lógica
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    units = db.relationship("Unit", secondary=routine_units, lazy="select")
    assignees = db.relationship("RoutineAssignee", backref="routine", cascade="all, delete-orphan", lazy="select")
    periods = db.relationship("RoutinePeriod", backref="routine", lazy="dynamic")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "frequency": self.frequency,
            "frequency_label": FREQUENCY_LABELS.get(self.frequency, self.frequency),
            "recurrence_mode": self.recurrence_mode,
            "skip_weekends_holidays": self.skip_weekends_holidays,
            "monthly_anchor": self.monthly_anchor,
            "anchor_date": _iso(self.anchor_date),
            "unit_id": self.unit_id,
            "sector_id": self.sector_id,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "unit_ids": sorted(u.id for u in self.units),
            "assignee_ids": sorted(a.user_id for a in self.assignees),
        }


class RoutineAssignee(db.Model):
    __tablename__ = "routine_assignees"

    id = db.Column(db.Integer, primary_key=True)
    routine_id = db.Column(db.Integer, db.ForeignKey("routines.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    user = db.relationship("User", lazy="joined")

    __table_args__ = (
        db.UniqueConstraint("routine_id", "user_id", name="uq_routine_assignee"),
    )


class RoutinePeriod(db.Model):
    """Uma janela de execução da rotina (ex.: semana de 6 a 12/jan)."""
    __tablename__ = "routine_periods"

    id = db.Column(db.Integer, primary_key=True)
    routine_id = db.Column(db.Integer, db.ForeignKey("routines.id"), nullable=False, index=True)

    period_start = db.Column(db.DateTime, nullable=False, index=True)
    period_end = db.Column(db.DateTime, nullable=False)

    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    checkins = db.relationship(
        "RoutineCheckin",
        backref="period",
        cascade="all, delete-orphan",
        order_by="RoutineCheckin.id",
        lazy="select",
    )

    def to_dict(self, with_checkins: bool = False) -> dict:
        data = {
            "id": self.id,
            "routine_id": self.routine_id,
            "period_start": _iso(self.period_start),
            "period_end": _iso(self.period_end),
            "is_active": self.is_active,
        }
        if with_checkins:
            data["routine_checkins"] = [c.to_dict() for c in self.checkins]
        return data


class RoutineCheckin(db.Model):
    """Confirmação de uma unidade (ou responsável) dentro de um período."""
    __tablename__ = "routine_checkins"

    id = db.Column(db.Integer, primary_key=True)
    routine_period_id = db.Column(db.Integer, db.ForeignKey("routine_periods.id"), nullable=False, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=False, index=True)
    assignee_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    # pending -> aguardando, completed -> confirmado, not_completed -> não realizado
    status = db.Column(db.String(20), default="pending", nullable=False, index=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    completed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    notes = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    unit = db.relationship("Unit", lazy="joined")
    assignee = db.relationship("User", foreign_keys=[assignee_user_id], lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "routine_period_id": self.routine_period_id,
            "unit_id": self.unit_id,
            "unit": {"id": self.unit.id, "name": self.unit.name, "code": self.unit.code} if self.unit else None,
            "assignee_user_id": self.assignee_user_id,
            "assignee_profile": {
                "id": self.assignee.id,
                "full_name": self.assignee.full_name,
                "email": self.assignee.email,
            } if self.assignee else None,
            "status": self.status,
            "completed_at": _iso(self.completed_at),
            "completed_by": self.completed_by,
            "notes": self.notes,
        }


class RoutineComment(db.Model):
    __tablename__ = "routine_comments"

    id = db.Column(db.Integer, primary_key=True)
    routine_id = db.Column(db.Integer, db.ForeignKey("routines.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship("User", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "routine_id": self.routine_id,
            "user_id": self.user_id,
            "user": _author(self.user),
            "content": self.content,
            "created_at": _iso(self.created_at),
        }


class RoutineHistory(db.Model):
    """Linha do tempo da rotina (comentários, checklist, anexos, períodos)."""
    __tablename__ = "routine_history"

    id = db.Column(db.Integer, primary_key=True)
    routine_id = db.Column(db.Integer, db.ForeignKey("routines.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    action_type = db.Column(db.String(30), nullable=False)
    details = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship("User", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "routine_id": self.routine_id,
            "user_id": self.user_id,
            "user": _author(self.user),
            "action_type": self.action_type,
            "details": self.details,
            "created_at": _iso(self.created_at),
        }


class ChecklistItem(db.Model):
    __tablename__ = "checklist_items"

    id = db.Column(db.Integer, primary_key=True)
    routine_id = db.Column(db.Integer, db.ForeignKey("routines.id"), nullable=False, index=True)
    content = db.Column(db.String(500), nullable=False)
    is_completed = db.Column(db.Boolean, default=False, nullable=False)
    order_index = db.Column(db.Integer, default=0, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "routine_id": self.routine_id,
            "content": self.content,
            "is_completed": self.is_completed,
            "order_index": self.order_index,
            "created_by": self.created_by,
        }


class RoutineAttachment(db.Model):
    __tablename__ = "routine_attachments"

    id = db.Column(db.Integer, primary_key=True)
    routine_id = db.Column(db.Integer, db.ForeignKey("routines.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    file_name = db.Column(db.String(255), nullable=False)
    file_path = db.Column(db.String(400), nullable=False)  # rotinas/{routine_id}/{token}_{nome}
    file_type = db.Column(db.String(120), nullable=True)
    file_size = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "routine_id": self.routine_id,
            "user_id": self.user_id,
            "file_name": self.file_name,
            "file_path": self.file_path,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "created_at": _iso(self.created_at),
        }
