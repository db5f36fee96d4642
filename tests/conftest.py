"""Fixtures compartilhadas: app em memória, cliente e cadastro básico."""
import pytest

from rotinas import create_app
from rotinas.config import TestConfig
from rotinas.extensions import db
from rotinas.models import Sector, Unit, User

PASSWORD = "senha123"


@pytest.fixture
def app(tmp_path):
    class Cfg(TestConfig):
        UPLOAD_FOLDER = str(tmp_path / "uploads")

    app = create_app(Cfg)
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def org(app):
    with app.app_context():
        return _seed_org()


def _seed_org():
    """Setor, uma gerência com três unidades e usuários admin/colaborador."""
    sector = Sector(name="Operações", active=True)
    db.session.add(sector)
    db.session.flush()

    gerencia = Unit(name="Gerência Regional", code="GER", sector_id=sector.id)
    db.session.add(gerencia)
    db.session.flush()

    units = [
        Unit(name=f"Unidade {c}", code=f"UN-{c}", parent_id=gerencia.id, sector_id=sector.id)
        for c in ("A", "B", "C")
    ]
    db.session.add_all(units)
    db.session.flush()

    admin = User(email="admin@local", full_name="Admin", role="admin", status="active", sector_id=sector.id)
    colab = User(email="colab@local", full_name="Colab", role="usuario", status="active",
                 unit_id=units[0].id, sector_id=sector.id)
    pending = User(email="novo@local", full_name="Novo", role="usuario", status="pending")
    for u in (admin, colab, pending):
        u.set_password(PASSWORD)
    db.session.add_all([admin, colab, pending])
    db.session.commit()

    return {
        "sector": sector.id,
        "gerencia": gerencia.id,
        "units": [u.id for u in units],
        "admin": admin.id,
        "colab": colab.id,
    }


@pytest.fixture
def login(client):
    def _login(email="admin@local", password=PASSWORD):
        resp = client.post("/api/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.get_json()
        return resp.get_json()
    return _login


@pytest.fixture
def admin_client(client, org, login):
    login("admin@local")
    return client


def _logged_client(app, email):
    client = app.test_client()
    resp = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture
def user_client(app, org):
    """Cliente separado logado como colaborador (perfil usuario)."""
    return _logged_client(app, "colab@local")
