from __future__ import annotations
from datetime import datetime
from ..extensions import db

TASK_STATUS = (
    "pendente",
    "em_andamento",
    "concluida",
    "atrasada",
    "cancelada",
    "nao_aplicavel",
)

# status que contam como "resolvido" na consolidação da tarefa pai
DONE_STATUS = ("concluida", "nao_aplicavel")


class Task(db.Model):
    """
    Tarefa. Tarefas com routine_id herdam a frequência da rotina no painel;
    tarefas sem parent_task_id mas com filhas funcionam como linha pai.
    """
    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(20), default="pendente", nullable=False, index=True)
    priority = db.Column(db.Integer, nullable=True)

    routine_id = db.Column(db.Integer, db.ForeignKey("routines.id"), nullable=True, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=True, index=True)
    sector_id = db.Column(db.Integer, db.ForeignKey("sectors.id"), nullable=True, index=True)
    assigned_to = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    parent_task_id = db.Column(db.Integer, db.ForeignKey("tasks.id"), nullable=True, index=True)
    # período de rotina que gerou a tarefa (pai e filhas)
    routine_period_id = db.Column(db.Integer, db.ForeignKey("routine_periods.id"), nullable=True, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    start_date = db.Column(db.DateTime, nullable=True)
    due_date = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    routine = db.relationship("Routine", lazy="select")
    children = db.relationship("Task", backref=db.backref("parent", remote_side=[id]), lazy="select")
    subtasks = db.relationship(
        "Subtask", backref="task", cascade="all, delete-orphan", order_by="Subtask.order_index", lazy="select"
    )
    comments = db.relationship("TaskComment", cascade="all, delete-orphan", lazy="select")
    history = db.relationship("TaskHistory", cascade="all, delete-orphan", lazy="select")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "routine_id": self.routine_id,
            "unit_id": self.unit_id,
            "sector_id": self.sector_id,
            "assigned_to": self.assigned_to,
            "parent_task_id": self.parent_task_id,
            "routine_period_id": self.routine_period_id,
            "created_by": self.created_by,
            "start_date": self.start_date.isoformat(timespec="seconds") if self.start_date else None,
            "due_date": self.due_date.isoformat(timespec="seconds") if self.due_date else None,
            "completed_at": self.completed_at.isoformat(timespec="seconds") if self.completed_at else None,
        }


def _iso(value):
    return value.isoformat(timespec="seconds") if value else None


class Subtask(db.Model):
    """Item de execução dentro de uma tarefa, com responsável próprio."""
    __tablename__ = "subtasks"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey("tasks.id"), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    assigned_to = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    order_index = db.Column(db.Integer, default=0, nullable=False)

    is_completed = db.Column(db.Boolean, default=False, nullable=False)
    completed_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "title": self.title,
            "assigned_to": self.assigned_to,
            "order_index": self.order_index,
            "is_completed": self.is_completed,
            "completed_at": _iso(self.completed_at),
        }


class TaskComment(db.Model):
    __tablename__ = "task_comments"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey("tasks.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    user = db.relationship("User", lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "user_id": self.user_id,
            "user": {"id": self.user.id, "full_name": self.user.full_name, "email": self.user.email}
            if self.user else None,
            "content": self.content,
            "created_at": _iso(self.created_at),
        }


class TaskHistory(db.Model):
    """
    Linha do tempo da tarefa. action_type: created, status, comment,
    subtask_add, subtask_toggle; details guarda o resumo (JSON).
    """
    __tablename__ = "task_history"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey("tasks.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    action_type = db.Column(db.String(30), nullable=False)
    details = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "user_id": self.user_id,
            "action_type": self.action_type,
            "details": self.details,
            "created_at": _iso(self.created_at),
        }
