from wtforms import StringField, TextAreaField, IntegerField, BooleanField, DateTimeField
from wtforms.validators import DataRequired, Length, Optional, AnyOf

from ...models.routine import FREQUENCY_CHOICES, RECURRENCE_MODES, MONTHLY_ANCHORS
from ...utils.forms import ApiForm, ISO_FORMATS


class RoutineForm(ApiForm):
    title = StringField("Título", validators=[DataRequired(message="O título é obrigatório"), Length(max=200)])
    description = TextAreaField("Descrição", validators=[Optional(), Length(max=2000)])
    frequency = StringField("Frequência", validators=[DataRequired(), AnyOf(FREQUENCY_CHOICES)])
    recurrence_mode = StringField("Recorrência", validators=[Optional(), AnyOf(RECURRENCE_MODES)])
    skip_weekends_holidays = BooleanField("Pular fins de semana e feriados")
    monthly_anchor = StringField("Âncora mensal", validators=[Optional(), AnyOf(MONTHLY_ANCHORS)])
    anchor_date = DateTimeField("Data base", format=ISO_FORMATS, validators=[Optional()])
    unit_id = IntegerField("Unidade", validators=[Optional()])
    sector_id = IntegerField("Setor", validators=[Optional()])


class RoutineUpdateForm(RoutineForm):
    title = StringField("Título", validators=[Optional(), Length(min=1, max=200)])
    frequency = StringField("Frequência", validators=[Optional(), AnyOf(FREQUENCY_CHOICES)])
    is_active = BooleanField("Ativa")


class OpenPeriodForm(ApiForm):
    # data de referência do cálculo da janela (padrão: agora)
    reference = DateTimeField("Referência", format=ISO_FORMATS, validators=[Optional()])


class CheckinForm(ApiForm):
    notes = TextAreaField("Observação", validators=[Optional(), Length(max=500)])


class CommentForm(ApiForm):
    content = TextAreaField("Comentário", validators=[DataRequired(message="O comentário está vazio"), Length(max=5000)])


class ChecklistItemForm(ApiForm):
    content = StringField("Item", validators=[DataRequired(message="O item está vazio"), Length(max=500)])


class ChecklistToggleForm(ApiForm):
    is_completed = BooleanField("Concluído")


class BulkCompleteForm(ApiForm):
    # True: conclui também as filhas pendentes; False: só encerra as tarefas pai
    resolve_all = BooleanField("Resolver pendentes")
