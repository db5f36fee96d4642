from functools import wraps

from flask_login import current_user

from ..errors import Forbidden, ServiceError
from ..models.user import MANAGER_ROLES


class NotAuthenticated(ServiceError):
    status = 401


def _check_active() -> None:
    if not current_user.is_authenticated:
        raise NotAuthenticated("Não autenticado")
    if getattr(current_user, "status", None) != "active":
        raise Forbidden("Usuário aguardando liberação.")


def require_active(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        _check_active()
        return f(*args, **kwargs)
    return wrapper


def require_roles(*roles: str):
    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            _check_active()
            if getattr(current_user, "role", None) not in roles:
                raise Forbidden("Sem permissão")
            return f(*args, **kwargs)
        return wrapper
    return decorator


# gestor/admin: criar rotinas, abrir períodos, cadastrar unidades e setores
require_manager = require_roles(*MANAGER_ROLES)
