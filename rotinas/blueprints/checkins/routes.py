from flask import Blueprint, jsonify
from flask_login import login_required, current_user

from ...extensions import csrf
from ...utils.forms import json_payload, load_form
from ...utils.security import require_active
from ..routines import services
from ..routines.forms import CheckinForm

bp = Blueprint("checkins", __name__, url_prefix="/api/checkins")
csrf.exempt(bp)


@bp.post("/<int:checkin_id>/complete")
@login_required
@require_active
def complete(checkin_id: int):
    checkin = services.get_checkin(checkin_id)
    form = load_form(CheckinForm, json_payload())
    services.complete_checkin(checkin, current_user.id, form.notes.data)
    return jsonify(checkin.to_dict())


@bp.post("/<int:checkin_id>/not-completed")
@login_required
@require_active
def not_completed(checkin_id: int):
    checkin = services.get_checkin(checkin_id)
    form = load_form(CheckinForm, json_payload())
    services.mark_checkin_not_completed(checkin, current_user.id, form.notes.data)
    return jsonify(checkin.to_dict())


@bp.post("/<int:checkin_id>/undo")
@login_required
@require_active
def undo(checkin_id: int):
    checkin = services.get_checkin(checkin_id)
    services.undo_checkin(checkin)
    return jsonify(checkin.to_dict())
