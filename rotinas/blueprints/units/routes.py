from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required
from wtforms import StringField, IntegerField
from wtforms.validators import DataRequired, Length, Optional

from ...errors import Conflict, NotFound, ValidationFailed
from ...extensions import csrf, db
from ...models import Unit
from ...utils.forms import ApiForm, json_payload, load_form
from ...utils.security import require_active, require_manager

bp = Blueprint("units", __name__, url_prefix="/api/units")
csrf.exempt(bp)


class UnitForm(ApiForm):
    name = StringField("Nome", validators=[DataRequired(message="Nome da unidade é obrigatório"), Length(max=120)])
    code = StringField("Código", validators=[DataRequired(message="Código é obrigatório"), Length(max=32)])
    description = StringField("Descrição", validators=[Optional(), Length(max=255)])
    parent_id = IntegerField("Gerência", validators=[Optional()])
    sector_id = IntegerField("Setor", validators=[Optional()])


class UnitUpdateForm(UnitForm):
    name = StringField("Nome", validators=[Optional(), Length(min=1, max=120)])
    code = StringField("Código", validators=[Optional(), Length(min=1, max=32)])


def _get_unit(unit_id: int) -> Unit:
    unit = db.session.get(Unit, unit_id)
    if unit is None:
        raise NotFound("Unidade não encontrada")
    return unit


def _check_parent(unit_id, parent_id) -> None:
    if parent_id is None:
        return
    if parent_id == unit_id:
        raise ValidationFailed({"parent_id": ["Unidade não pode ser gerência de si mesma"]})
    parent = _get_unit(parent_id)
    if parent.parent_id is not None:
        raise ValidationFailed({"parent_id": ["A gerência deve ser uma unidade de topo"]})


@bp.get("/")
@login_required
@require_active
def list_units():
    q = Unit.query
    sector_id = request.args.get("sector_id", type=int)
    if sector_id:
        q = q.filter_by(sector_id=sector_id)

    if request.args.get("leaf_only") in ("1", "true"):
        units = q.filter(Unit.parent_id.isnot(None)).order_by(Unit.name.asc()).all()
        return jsonify([u.to_dict() for u in units])

    if request.args.get("tree") in ("1", "true"):
        roots = q.filter(Unit.parent_id.is_(None)).order_by(Unit.name.asc()).all()
        return jsonify([u.to_dict(with_children=True) for u in roots])

    return jsonify([u.to_dict() for u in q.order_by(Unit.name.asc()).all()])


@bp.post("/")
@login_required
@require_manager
def create_unit():
    form = load_form(UnitForm, json_payload())
    code = form.code.data.strip()
    if Unit.query.filter_by(code=code).first():
        raise Conflict("Código de unidade já existe")
    _check_parent(None, form.parent_id.data)

    u = Unit(
        name=form.name.data.strip(),
        code=code,
        description=(form.description.data or "").strip() or None,
        parent_id=form.parent_id.data,
        sector_id=form.sector_id.data,
    )
    db.session.add(u)
    db.session.commit()
    return jsonify(u.to_dict()), 201


@bp.patch("/<int:unit_id>")
@login_required
@require_manager
def update_unit(unit_id: int):
    u = _get_unit(unit_id)
    payload = json_payload()
    form = load_form(UnitUpdateForm, payload)

    if "code" in payload and form.code.data:
        code = form.code.data.strip()
        other = Unit.query.filter_by(code=code).first()
        if other and other.id != u.id:
            raise Conflict("Código de unidade já existe")
        u.code = code
    if "name" in payload and form.name.data:
        u.name = form.name.data.strip()
    if "description" in payload:
        u.description = (form.description.data or "").strip() or None
    if "parent_id" in payload:
        _check_parent(u.id, form.parent_id.data)
        if form.parent_id.data is not None and u.children:
            raise ValidationFailed({"parent_id": ["Gerência com unidades não pode virar unidade"]})
        u.parent_id = form.parent_id.data
    if "sector_id" in payload:
        u.sector_id = form.sector_id.data

    db.session.commit()
    return jsonify(u.to_dict())


@bp.delete("/<int:unit_id>")
@login_required
@require_manager
def delete_unit(unit_id: int):
    u = _get_unit(unit_id)
    if u.children:
        raise Conflict("Remova as unidades desta gerência antes de excluí-la")
    db.session.delete(u)
    db.session.commit()
    return jsonify({"ok": True})
