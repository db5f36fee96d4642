import pytest

from rotinas.blueprints.tasks.services import rollup_status
from rotinas.models import Subtask, TaskComment, TaskHistory


@pytest.mark.parametrize("statuses, expected", [
    (["concluida", "concluida"], "concluida"),
    (["concluida", "nao_aplicavel"], "concluida"),
    (["concluida", "pendente"], "em_andamento"),
    (["pendente", "atrasada"], "pendente"),
    ([], "pendente"),
])
def test_rollup_status(statuses, expected):
    assert rollup_status(statuses) == expected


def _routine(client, org, **extra):
    payload = {"title": "Ronda", "frequency": "diaria", "unit_ids": org["units"][:2]}
    payload.update(extra)
    resp = client.post("/api/routines/", json=payload)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


def _family(client, routine_id):
    tasks = client.get(f"/api/tasks/?routine_id={routine_id}").get_json()
    parent = next(t for t in tasks if t["parent_task_id"] is None)
    children = [t for t in tasks if t["parent_task_id"] == parent["id"]]
    return parent, children


def test_create_simple_task(admin_client, org):
    resp = admin_client.post("/api/tasks/", json={
        "title": " Trocar lâmpadas ",
        "unit_id": org["units"][0],
        "start_date": "2024-03-01",
        "due_date": "2024-03-05T18:00",
    })
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["title"] == "Trocar lâmpadas"
    assert body["status"] == "pendente"
    assert body["due_date"] == "2024-03-05T18:00:00"


def test_due_before_start_is_rejected(admin_client, org):
    resp = admin_client.post("/api/tasks/", json={
        "title": "X", "start_date": "2024-03-05", "due_date": "2024-03-01",
    })
    assert resp.status_code == 400
    assert "due_date" in resp.get_json()["fields"]


def test_task_with_units_creates_children(admin_client, org):
    parent = admin_client.post("/api/tasks/", json={"title": "Auditoria", "unit_ids": org["units"]}).get_json()
    assert parent["unit_id"] is None

    body = admin_client.get(f"/api/tasks/{parent['id']}/children").get_json()
    assert sorted(c["unit_id"] for c in body["children"]) == sorted(org["units"])
    assert body["summary"]["total"] == 3
    assert body["summary"]["percentage"] == 0

    roots = admin_client.get("/api/tasks/?parent_task_id=null").get_json()
    assert [t["id"] for t in roots] == [parent["id"]]


def test_child_status_rolls_up_and_syncs_checkin(admin_client, org):
    routine = _routine(admin_client, org)
    parent, children = _family(admin_client, routine["id"])
    first = next(c for c in children if c["unit_id"] == org["units"][0])

    resp = admin_client.patch(f"/api/tasks/{first['id']}", json={"status": "concluida", "comment": "feito"})
    assert resp.status_code == 200
    assert resp.get_json()["completed_at"] is not None

    assert admin_client.get(f"/api/tasks/{parent['id']}").get_json()["status"] == "em_andamento"

    current = admin_client.get(f"/api/routines/{routine['id']}/current").get_json()
    checkin = next(c for c in current["period"]["routine_checkins"] if c["unit_id"] == org["units"][0])
    assert checkin["status"] == "completed"
    assert checkin["notes"] == "feito"

    # reabrir a tarefa volta o checkin para pendente
    admin_client.patch(f"/api/tasks/{first['id']}", json={"status": "pendente"})
    current = admin_client.get(f"/api/routines/{routine['id']}/current").get_json()
    assert current["summary"]["completed"] == 0
    assert admin_client.get(f"/api/tasks/{parent['id']}").get_json()["status"] == "pendente"


def test_not_applicable_maps_to_not_completed(admin_client, org):
    routine = _routine(admin_client, org)
    _, children = _family(admin_client, routine["id"])

    admin_client.patch(f"/api/tasks/{children[0]['id']}", json={"status": "nao_aplicavel"})
    current = admin_client.get(f"/api/routines/{routine['id']}/current").get_json()
    statuses = sorted(c["status"] for c in current["period"]["routine_checkins"])
    assert statuses == ["not_completed", "pending"]


def test_bulk_status_completes_parent(admin_client, org):
    routine = _routine(admin_client, org)
    parent, children = _family(admin_client, routine["id"])

    resp = admin_client.post("/api/tasks/bulk-status", json={
        "task_ids": [c["id"] for c in children], "status": "concluida",
    })
    assert resp.get_json() == {"ok": True, "updated": 2}
    assert admin_client.get(f"/api/tasks/{parent['id']}").get_json()["status"] == "concluida"

    # rotina por agenda: nada de novo período
    periods = admin_client.get(f"/api/routines/{routine['id']}/periods").get_json()
    assert len(periods) == 1
    assert periods[0]["summary"]["percentage"] == 100


def test_on_completion_opens_next_period(admin_client, org):
    routine = _routine(admin_client, org, recurrence_mode="on_completion")
    first_period = routine["current_period"]
    _, children = _family(admin_client, routine["id"])

    for child in children:
        admin_client.patch(f"/api/tasks/{child['id']}", json={"status": "concluida"})

    periods = admin_client.get(f"/api/routines/{routine['id']}/periods").get_json()
    assert len(periods) == 1
    assert periods[0]["id"] != first_period["id"]
    assert periods[0]["period_start"] > first_period["period_start"]
    assert periods[0]["summary"] == {
        "completed": 0, "pending": 2, "total": 2, "percentage": 0, "bucket": "danger",
    }


def test_delete_parent_removes_children(admin_client, org):
    parent = admin_client.post("/api/tasks/", json={"title": "Mutirão", "unit_ids": org["units"][:2]}).get_json()
    assert admin_client.delete(f"/api/tasks/{parent['id']}").status_code == 200
    assert admin_client.get("/api/tasks/?title=Mutir").get_json() == []


def test_bulk_delete(admin_client, org):
    ids = [admin_client.post("/api/tasks/", json={"title": f"T{i}"}).get_json()["id"] for i in range(3)]
    resp = admin_client.post("/api/tasks/bulk-delete", json={"task_ids": ids[:2]})
    assert resp.get_json() == {"ok": True, "deleted": 2}
    assert [t["id"] for t in admin_client.get("/api/tasks/").get_json()] == ids[2:]


def test_unknown_task(admin_client, org):
    assert admin_client.get("/api/tasks/999").status_code == 404
    assert admin_client.patch("/api/tasks/999", json={"status": "concluida"}).status_code == 404


def test_subtasks(admin_client, user_client, org):
    task = admin_client.post("/api/tasks/", json={"title": "Inventário"}).get_json()
    url = f"/api/tasks/{task['id']}/subtasks"

    first = admin_client.post(url, json={"title": " Contar estoque ", "assigned_to": org["colab"]}).get_json()
    second = admin_client.post(url, json={"title": "Conferir notas"}).get_json()
    assert first["title"] == "Contar estoque"
    assert (first["order_index"], second["order_index"]) == (0, 1)
    assert admin_client.post(url, json={"title": ""}).status_code == 400

    done = admin_client.patch(f"/api/tasks/subtasks/{first['id']}", json={"is_completed": True}).get_json()
    assert done["is_completed"] is True
    assert done["completed_at"] is not None

    mine = user_client.get("/api/tasks/subtasks/mine").get_json()
    assert [s["id"] for s in mine] == [first["id"]]
    assert mine[0]["task"]["title"] == "Inventário"

    assert admin_client.delete(f"/api/tasks/subtasks/{second['id']}").status_code == 200
    assert [s["id"] for s in admin_client.get(url).get_json()] == [first["id"]]
    assert admin_client.patch("/api/tasks/subtasks/999", json={"title": "X"}).status_code == 404

    actions = [h["action_type"] for h in admin_client.get(f"/api/tasks/{task['id']}/history").get_json()]
    assert actions == ["subtask_toggle", "subtask_add", "subtask_add", "created"]


def test_comments_and_status_history(admin_client, org):
    task = admin_client.post("/api/tasks/", json={"title": "Vistoria"}).get_json()

    resp = admin_client.post(f"/api/tasks/{task['id']}/comments", json={"content": "Aguardando chave"})
    assert resp.status_code == 201
    assert resp.get_json()["user"]["email"] == "admin@local"
    assert admin_client.post(f"/api/tasks/{task['id']}/comments", json={}).status_code == 400

    admin_client.patch(f"/api/tasks/{task['id']}", json={"status": "concluida"})

    comments = admin_client.get(f"/api/tasks/{task['id']}/comments").get_json()
    assert [c["content"] for c in comments] == ["Aguardando chave"]

    history = admin_client.get(f"/api/tasks/{task['id']}/history").get_json()
    assert history[0]["action_type"] == "status"
    assert history[0]["details"] == {"from": "pendente", "to": "concluida"}
    assert history[0]["user_id"] == org["admin"]
    assert history[1]["details"] == {"snippet": "Aguardando chave"}


def test_new_period_copies_parent_subtasks(admin_client, org):
    routine = _routine(admin_client, org, frequency="semanal")
    parent, _ = _family(admin_client, routine["id"])
    admin_client.post(f"/api/tasks/{parent['id']}/subtasks", json={"title": "Fotografar painel", "assigned_to": org["colab"]})
    sub = admin_client.get(f"/api/tasks/{parent['id']}/subtasks").get_json()[0]
    admin_client.patch(f"/api/tasks/subtasks/{sub['id']}", json={"is_completed": True})

    period = admin_client.post(f"/api/routines/{routine['id']}/periods", json={"reference": "2030-01-09"}).get_json()

    tasks = admin_client.get(f"/api/tasks/?routine_id={routine['id']}&parent_task_id=null").get_json()
    new_parent = next(t for t in tasks if t["routine_period_id"] == period["id"])
    copied = admin_client.get(f"/api/tasks/{new_parent['id']}/subtasks").get_json()
    assert [(s["title"], s["assigned_to"], s["is_completed"]) for s in copied] == [
        ("Fotografar painel", org["colab"], False),
    ]


def test_delete_task_removes_subtasks_and_comments(admin_client, app, org):
    task = admin_client.post("/api/tasks/", json={"title": "Temporária"}).get_json()
    admin_client.post(f"/api/tasks/{task['id']}/subtasks", json={"title": "Passo 1"})
    admin_client.post(f"/api/tasks/{task['id']}/comments", json={"content": "ok"})

    assert admin_client.delete(f"/api/tasks/{task['id']}").status_code == 200
    with app.app_context():
        assert Subtask.query.count() == 0
        assert TaskComment.query.count() == 0
        assert TaskHistory.query.count() == 0
