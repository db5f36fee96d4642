from flask import Blueprint, jsonify, request
from flask_login import login_required

from ...realtime import get_cache
from ...utils.security import require_active
from . import services

bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


def _sector_id():
    return request.args.get("sector_id", type=int)


@bp.get("/units-routine-status")
@login_required
@require_active
def units_routine_status():
    return jsonify(services.unit_routine_status(get_cache(), _sector_id()))


@bp.get("/responsible-routine-status")
@login_required
@require_active
def responsible_routine_status():
    return jsonify(services.responsible_routine_status(get_cache(), _sector_id()))


@bp.get("/units-summary")
@login_required
@require_active
def units_summary():
    return jsonify(services.units_summary(get_cache(), _sector_id()))


@bp.get("/overall-stats")
@login_required
@require_active
def overall_stats():
    return jsonify(services.overall_stats(get_cache(), _sector_id()))


@bp.get("/by-frequency")
@login_required
@require_active
def by_frequency():
    return jsonify(services.frequency_summary(get_cache(), _sector_id()))
