from flask import Blueprint, jsonify, request
from flask_login import login_required

from ...extensions import changes
from ...utils.security import require_active

bp = Blueprint("changes", __name__, url_prefix="/api/changes")


@bp.get("/")
@login_required
@require_active
def poll():
    """Eventos de alteração depois de ``since`` (clientes recarregam as listas afetadas)."""
    since = request.args.get("since", default=0, type=int)
    events, last = changes.since(since)
    return jsonify({"events": [e.to_dict() for e in events], "last_seq": last})
