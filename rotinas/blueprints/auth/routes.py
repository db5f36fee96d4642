from flask import Blueprint, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from wtforms import StringField, PasswordField
from wtforms.validators import DataRequired, Length

from ...extensions import csrf
from ...models.user import User
from ...utils.forms import ApiForm, json_payload, load_form

bp = Blueprint("auth", __name__, url_prefix="/api/auth")
csrf.exempt(bp)


class LoginForm(ApiForm):
    email = StringField("E-mail", validators=[DataRequired(), Length(min=3, max=180)])
    password = PasswordField("Senha", validators=[DataRequired(), Length(min=4, max=128)])


@bp.post("/login")
def login():
    form = load_form(LoginForm, json_payload())
    email = (form.email.data or "").strip().lower()
    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(form.password.data):
        return jsonify({"error": "Login inválido."}), 401
    if user.status != "active":
        return jsonify({"error": "Usuário aguardando liberação."}), 403

    login_user(user)
    return jsonify(user.to_dict())


@bp.post("/logout")
@login_required
def logout():
    logout_user()
    return jsonify({"ok": True})


@bp.get("/me")
@login_required
def me():
    return jsonify(current_user.to_dict())
