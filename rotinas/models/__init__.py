from .user import User
from .sector import Sector
from .unit import Unit

from .routine import (
    Routine, RoutineAssignee, RoutinePeriod, RoutineCheckin, routine_units,
    RoutineComment, RoutineHistory, RoutineAttachment, ChecklistItem,
)
from .task import Task, Subtask, TaskComment, TaskHistory

from .note import Note, NoteAttachment

__all__ = [
    # Usuários / Estrutura
    "User",
    "Sector",
    "Unit",

    # Rotinas
    "Routine",
    "RoutineAssignee",
    "RoutinePeriod",
    "RoutineCheckin",
    "routine_units",
    "RoutineComment",
    "RoutineHistory",
    "RoutineAttachment",
    "ChecklistItem",

    # Tarefas
    "Task",
    "Subtask",
    "TaskComment",
    "TaskHistory",

    # Anotações
    "Note",
    "NoteAttachment",
]
