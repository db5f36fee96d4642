from __future__ import annotations

from flask import Blueprint, request, jsonify
from flask_login import login_required
from wtforms import StringField
from wtforms.validators import DataRequired, Length, Optional

from ...errors import Conflict, ValidationFailed
from ...extensions import csrf, db
from ...models import Sector
from ...utils.forms import ApiForm, json_payload, load_form
from ...utils.security import require_active, require_manager

bp = Blueprint("sectors", __name__, url_prefix="/api/sectors")
csrf.exempt(bp)


class SectorForm(ApiForm):
    name = StringField("Nome", validators=[DataRequired(message="Nome do setor é obrigatório"), Length(max=80)])
    description = StringField("Descrição", validators=[Optional(), Length(max=255)])


class SectorUpdateForm(SectorForm):
    name = StringField("Nome", validators=[Optional(), Length(max=80)])


def _check_unique_name(name: str, sector_id: int | None = None) -> None:
    other = Sector.query.filter_by(name=name).first()
    if other and other.id != sector_id:
        raise Conflict("Setor já existe")


@bp.get("/")
@login_required
@require_active
def list_sectors():
    q = (request.args.get("q") or "").strip()
    query = Sector.query
    if q:
        query = query.filter(Sector.name.ilike(f"%{q}%"))
    if request.args.get("all") not in ("1", "true"):
        query = query.filter_by(active=True)

    sectors = query.order_by(Sector.active.desc(), Sector.name.asc()).all()
    return jsonify([s.to_dict() for s in sectors])


@bp.post("/")
@login_required
@require_manager
def create_sector():
    form = load_form(SectorForm, json_payload())
    name = form.name.data.strip()
    _check_unique_name(name)

    s = Sector(name=name, description=(form.description.data or "").strip() or None, active=True)
    db.session.add(s)
    db.session.commit()
    return jsonify(s.to_dict()), 201


@bp.patch("/<int:sector_id>")
@login_required
@require_manager
def update_sector(sector_id: int):
    s = db.get_or_404(Sector, sector_id)
    payload = json_payload()
    form = load_form(SectorUpdateForm, payload)

    if "name" in payload:
        name = (form.name.data or "").strip()
        if not name:
            raise ValidationFailed({"name": ["Nome do setor é obrigatório"]})
        _check_unique_name(name, s.id)
        s.name = name
    if "description" in payload:
        s.description = (form.description.data or "").strip() or None

    db.session.commit()
    return jsonify(s.to_dict())


@bp.post("/<int:sector_id>/toggle")
@login_required
@require_manager
def toggle_sector(sector_id: int):
    s = db.get_or_404(Sector, sector_id)
    s.active = not bool(s.active)
    db.session.commit()
    return jsonify(s.to_dict())
