import io
import json

from rotinas.extensions import db
from rotinas.models import Note


def _note(client, **extra):
    payload = {"title": "Aviso", "content": {"type": "doc", "content": []}}
    payload.update(extra)
    resp = client.post("/api/notes/", json=payload)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def test_create_json_note(admin_client):
    note = _note(admin_client)
    assert (note["position_x"], note["position_y"]) == (0, 0)
    assert note["content"] == {"type": "doc", "content": []}
    assert note["attachments"] == []
    assert "warning" not in note


def test_title_required(admin_client):
    resp = admin_client.post("/api/notes/", json={"title": "  "})
    assert resp.status_code == 400


def test_board_spreads_new_notes(admin_client):
    older = _note(admin_client, title="Primeira")
    newer = _note(admin_client, title="Segunda")

    board = {n["id"]: (n["position_x"], n["position_y"]) for n in admin_client.get("/api/notes/").get_json()}
    assert board[newer["id"]] == (0, 0)
    assert board[older["id"]] == (240, 0)


def test_board_converts_legacy_rank(app, admin_client, org):
    note = _note(admin_client)
    with app.app_context():
        n = db.session.get(Note, note["id"])
        n.position_x, n.position_y = 2, 1
        db.session.commit()

    board = admin_client.get("/api/notes/").get_json()
    assert (board[0]["position_x"], board[0]["position_y"]) == (480, 0)

    # leitura não grava a conversão
    with app.app_context():
        assert db.session.get(Note, note["id"]).position_x == 2


def test_move_snaps_to_grid(admin_client):
    note = _note(admin_client)
    resp = admin_client.post(f"/api/notes/{note['id']}/move", json={"dx": 130, "dy": -50})
    assert resp.status_code == 200
    assert resp.get_json() == {"id": note["id"], "position_x": 240, "position_y": 0}

    resp = admin_client.post(f"/api/notes/{note['id']}/move", json={"dx": 10})
    assert resp.status_code == 400


def test_private_note_hidden_from_others(client, org, login):
    login("colab@local")
    private = _note(client, title="Minha", is_private=True)
    public = _note(client, title="Geral")
    client.post("/api/auth/logout")

    login("admin@local")
    ids = [n["id"] for n in client.get("/api/notes/").get_json()]
    assert public["id"] in ids
    assert private["id"] not in ids
    assert client.patch(f"/api/notes/{private['id']}", json={"title": "x"}).status_code == 404


def test_only_author_or_manager_edits(client, org, login):
    login("admin@local")
    note = _note(client)
    client.post("/api/auth/logout")

    login("colab@local")
    assert client.patch(f"/api/notes/{note['id']}", json={"title": "Outro"}).status_code == 403
    assert client.delete(f"/api/notes/{note['id']}").status_code == 403


def test_update_note(admin_client):
    note = _note(admin_client)
    resp = admin_client.patch(f"/api/notes/{note['id']}", json={"title": " Novo ", "is_private": True})
    body = resp.get_json()
    assert body["title"] == "Novo"
    assert body["is_private"] is True


def test_multipart_create_with_attachment(admin_client, app):
    resp = admin_client.post(
        "/api/notes/",
        data={
            "title": "Com anexo",
            "content": json.dumps({"type": "doc"}),
            "attachments": (io.BytesIO(b"conteudo"), "relatorio final.pdf"),
        },
        content_type="multipart/form-data",
    )
    assert resp.status_code == 201
    note = resp.get_json()
    assert note["content"] == {"type": "doc"}

    att = note["attachments"][0]
    assert att["file_name"] == "relatorio final.pdf"
    assert att["file_path"].startswith(f"{note['id']}/")
    assert att["file_path"].endswith("_relatorio_final.pdf")
    assert att["file_size"] == len(b"conteudo")

    download = admin_client.get(f"/api/notes/attachments/{att['id']}")
    assert download.status_code == 200
    assert download.data == b"conteudo"

    url = admin_client.get(f"/api/notes/attachments/{att['id']}/url").get_json()["url"]
    assert url.endswith(att["file_path"])

    assert admin_client.delete(f"/api/notes/attachments/{att['id']}").status_code == 200
    assert admin_client.get(f"/api/notes/attachments/{att['id']}").status_code == 404


def test_add_attachments_requires_files(admin_client):
    note = _note(admin_client)
    resp = admin_client.post(f"/api/notes/{note['id']}/attachments", data={}, content_type="multipart/form-data")
    assert resp.status_code == 400


def test_delete_note_removes_files(admin_client, app, tmp_path):
    resp = admin_client.post(
        "/api/notes/",
        data={"title": "Apagar", "attachments": (io.BytesIO(b"x"), "a.txt")},
        content_type="multipart/form-data",
    )
    note = resp.get_json()
    stored = tmp_path / "uploads" / note["attachments"][0]["file_path"]
    assert stored.exists()

    assert admin_client.delete(f"/api/notes/{note['id']}").status_code == 200
    assert not stored.exists()
