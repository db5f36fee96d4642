from __future__ import annotations

from flask import request
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict

from ..errors import ValidationFailed

ISO_FORMATS = ["%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d"]


class ApiForm(FlaskForm):
    """Formulário validado a partir de JSON (sem CSRF, a API usa sessão + JSON)."""

    class Meta:
        csrf = False


def json_payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def load_form(form_cls, payload: dict):
    """
    Monta o formulário com os valores do JSON e valida.
    Valores None e objetos aninhados ficam de fora (o chamador trata).
    """
    formdata = MultiDict()
    for key, value in payload.items():
        if value is None or isinstance(value, dict):
            continue
        if isinstance(value, (list, tuple)):
            formdata.setlist(key, [str(v) for v in value])
        else:
            formdata.add(key, value if isinstance(value, bool) else str(value))

    form = form_cls(formdata=formdata)
    if not form.validate():
        raise ValidationFailed(form.errors)
    return form


def id_list(payload: dict, key: str) -> list[int] | None:
    """Lista de ids inteiros do JSON; None quando a chave não veio."""
    if key not in payload or payload[key] is None:
        return None
    raw = payload[key]
    if not isinstance(raw, (list, tuple)):
        raise ValidationFailed({key: ["Deve ser uma lista de ids."]})
    try:
        return [int(v) for v in raw]
    except (TypeError, ValueError):
        raise ValidationFailed({key: ["Ids inválidos."]})
