from __future__ import annotations
from datetime import datetime
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from ..extensions import db

MANAGER_ROLES = ("admin", "gestor")


class User(db.Model, UserMixin):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(180), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(120), nullable=True)

    password_hash = db.Column(db.String(255), nullable=False)

    # pending -> aguarda liberação, active -> liberado, blocked -> bloqueado
    status = db.Column(db.String(20), default="active", nullable=False, index=True)

    # role: admin, gestor, usuario
    role = db.Column(db.String(20), default="usuario", nullable=False, index=True)

    # unidade/setor de lotação (usados ao abrir períodos de rotina)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=True, index=True)
    sector_id = db.Column(db.Integer, db.ForeignKey("sectors.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES

    @property
    def display_name(self) -> str:
        return self.full_name or self.email

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "status": self.status,
            "unit_id": self.unit_id,
            "sector_id": self.sector_id,
        }

    def __repr__(self) -> str:
        return f"<User {self.email}>"
