def test_login_and_me(client, org, login):
    user = login("colab@local")
    assert user["role"] == "usuario"
    assert client.get("/api/auth/me").get_json()["email"] == "colab@local"

    client.post("/api/auth/logout")
    assert client.get("/api/auth/me").status_code == 401


def test_bad_password(client, org):
    resp = client.post("/api/auth/login", json={"email": "admin@local", "password": "errada"})
    assert resp.status_code == 401


def test_pending_user_cannot_login(client, org):
    resp = client.post("/api/auth/login", json={"email": "novo@local", "password": "senha123"})
    assert resp.status_code == 403


def test_sector_crud(admin_client, org):
    resp = admin_client.post("/api/sectors/", json={"name": "Operações"})
    assert resp.status_code == 409
    assert admin_client.post("/api/sectors/", json={"name": " "}).status_code == 400

    sector = admin_client.post("/api/sectors/", json={"name": "Qualidade", "description": "ISO"}).get_json()
    renamed = admin_client.patch(f"/api/sectors/{sector['id']}", json={"name": "Qualidade e Processos"}).get_json()
    assert renamed["name"] == "Qualidade e Processos"

    toggled = admin_client.post(f"/api/sectors/{sector['id']}/toggle").get_json()
    assert toggled["active"] is False
    active = [s["id"] for s in admin_client.get("/api/sectors/").get_json()]
    assert sector["id"] not in active
    everything = [s["id"] for s in admin_client.get("/api/sectors/?all=1").get_json()]
    assert sector["id"] in everything


def test_unit_tree_and_leaves(admin_client, org):
    leaves = admin_client.get("/api/units/?leaf_only=1").get_json()
    assert sorted(u["id"] for u in leaves) == sorted(org["units"])

    tree = admin_client.get("/api/units/?tree=1").get_json()
    assert [u["id"] for u in tree] == [org["gerencia"]]
    assert len(tree[0]["children"]) == 3


def test_unit_code_conflict(admin_client, org):
    resp = admin_client.post("/api/units/", json={"name": "Outra", "code": "UN-A", "parent_id": org["gerencia"]})
    assert resp.status_code == 409


def test_unit_parent_must_be_top_level(admin_client, org):
    resp = admin_client.post("/api/units/", json={"name": "Neta", "code": "UN-X", "parent_id": org["units"][0]})
    assert resp.status_code == 400
    assert "parent_id" in resp.get_json()["fields"]


def test_gerencia_with_units_cannot_be_deleted(admin_client, org):
    assert admin_client.delete(f"/api/units/{org['gerencia']}").status_code == 409

    created = admin_client.post("/api/units/", json={"name": "Avulsa", "code": "AV"}).get_json()
    assert admin_client.delete(f"/api/units/{created['id']}").status_code == 200


def test_plain_user_cannot_manage_units(user_client):
    assert user_client.post("/api/units/", json={"name": "X", "code": "X"}).status_code == 403


def test_dashboard_reflects_new_completion(admin_client, org):
    routine = admin_client.post("/api/routines/", json={
        "title": "Ronda", "frequency": "diaria", "unit_ids": org["units"][:2],
    }).get_json()

    assert routine["current_period"]["summary"]["total"] == 2

    stats = admin_client.get("/api/dashboard/overall-stats").get_json()
    assert stats["routineCount"] == 1
    assert stats["taskCount"] == 3
    assert stats["completed"] == 0

    child = next(t for t in admin_client.get("/api/tasks/").get_json() if t["parent_task_id"])
    admin_client.patch(f"/api/tasks/{child['id']}", json={"status": "concluida"})

    stats = admin_client.get("/api/dashboard/overall-stats").get_json()
    assert stats["completed"] == 1
    assert stats["percentage"] == 33

    by_unit = admin_client.get("/api/dashboard/units-routine-status").get_json()
    assert sorted(u["id"] for u in by_unit) == sorted(org["units"][:2])
    done = next(u for u in by_unit if u["id"] == child["unit_id"])
    assert done["frequencies"]["diaria"]["percentage"] == 100

    summary = admin_client.get("/api/dashboard/units-summary").get_json()
    assert len(summary) == 4  # todas as unidades, inclusive a gerência

    freq = admin_client.get("/api/dashboard/by-frequency").get_json()
    assert freq["frequencies"]["diaria"]["total"] == 3  # tarefa pai + filhas


def test_plain_user_reads_dashboard(user_client, admin_client, org):
    assert user_client.get("/api/dashboard/overall-stats").get_json()["routineCount"] == 0
    assert user_client.post("/api/sectors/", json={"name": "Nova"}).status_code == 403
    assert admin_client.post("/api/sectors/", json={"name": "Nova"}).status_code == 201


def test_sector_name_length_checked_on_update(admin_client, org):
    too_long = "S" * 81
    resp = admin_client.post("/api/sectors/", json={"name": too_long})
    assert resp.status_code == 400
    assert "name" in resp.get_json()["fields"]

    resp = admin_client.patch(f"/api/sectors/{org['sector']}", json={"name": too_long})
    assert resp.status_code == 400
    assert "name" in resp.get_json()["fields"]

    resp = admin_client.patch(f"/api/sectors/{org['sector']}", json={"name": "  "})
    assert resp.status_code == 400


def test_unknown_sector_is_json_404(admin_client, org):
    resp = admin_client.patch("/api/sectors/9999", json={"name": "X"})
    assert resp.status_code == 404
    assert "error" in resp.get_json()


def test_permission_errors_are_json(user_client, client, org):
    resp = user_client.post("/api/routines/", json={"title": "X", "frequency": "diaria"})
    assert resp.status_code == 403
    assert resp.get_json() == {"error": "Sem permissão"}

    assert client.get("/api/sectors/").status_code == 401
