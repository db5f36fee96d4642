from wtforms import StringField, TextAreaField, IntegerField, DateTimeField, BooleanField
from wtforms.validators import DataRequired, Length, Optional, AnyOf, NumberRange

from ...models.task import TASK_STATUS
from ...utils.forms import ApiForm, ISO_FORMATS


class TaskForm(ApiForm):
    title = StringField("Título", validators=[DataRequired(message="O título é obrigatório"), Length(max=200)])
    description = TextAreaField("Descrição", validators=[Optional(), Length(max=5000)])
    status = StringField("Status", validators=[Optional(), AnyOf(TASK_STATUS)])
    priority = IntegerField("Prioridade", validators=[Optional(), NumberRange(min=0, max=10)])
    routine_id = IntegerField("Rotina", validators=[Optional()])
    unit_id = IntegerField("Unidade", validators=[Optional()])
    sector_id = IntegerField("Setor", validators=[Optional()])
    assigned_to = IntegerField("Responsável", validators=[Optional()])
    parent_task_id = IntegerField("Tarefa pai", validators=[Optional()])
    start_date = DateTimeField("Início", format=ISO_FORMATS, validators=[Optional()])
    due_date = DateTimeField("Prazo", format=ISO_FORMATS, validators=[Optional()])


class TaskUpdateForm(TaskForm):
    title = StringField("Título", validators=[Optional(), Length(min=1, max=200)])
    # comentário gravado no checkin quando a tarefa é de rotina
    comment = TextAreaField("Comentário", validators=[Optional(), Length(max=500)])


class BulkStatusForm(ApiForm):
    status = StringField("Status", validators=[DataRequired(), AnyOf(TASK_STATUS)])


class SubtaskForm(ApiForm):
    title = StringField("Título", validators=[DataRequired(message="O título é obrigatório"), Length(max=200)])
    assigned_to = IntegerField("Responsável", validators=[Optional()])
    order_index = IntegerField("Ordem", validators=[Optional(), NumberRange(min=0)])


class SubtaskUpdateForm(SubtaskForm):
    title = StringField("Título", validators=[Optional(), Length(min=1, max=200)])
    is_completed = BooleanField("Concluída")


class CommentForm(ApiForm):
    content = TextAreaField("Comentário", validators=[DataRequired(message="O comentário está vazio"), Length(max=5000)])
