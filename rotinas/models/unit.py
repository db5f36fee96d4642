from __future__ import annotations
from datetime import datetime
from ..extensions import db


class Unit(db.Model):
    """
    Unidade organizacional.
    Sem parent_id é uma gerência; com parent_id é uma unidade (folha),
    que é quem recebe checkins e atribuições de rotina.
    """
    __tablename__ = "units"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), unique=True, nullable=False, index=True)
    description = db.Column(db.String(255), nullable=True)

    parent_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=True, index=True)
    sector_id = db.Column(db.Integer, db.ForeignKey("sectors.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    children = db.relationship("Unit", backref=db.backref("parent", remote_side=[id]), lazy="select")

    def to_dict(self, with_children: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "description": self.description,
            "parent_id": self.parent_id,
            "sector_id": self.sector_id,
        }
        if with_children:
            data["children"] = [c.to_dict() for c in sorted(self.children, key=lambda u: u.name)]
        return data

    def __repr__(self) -> str:
        return f"<Unit {self.code} {self.name}>"
