from types import SimpleNamespace as Row

from rotinas.utils import dashboard


ROUTINES = [Row(id=1, frequency="diaria"), Row(id=2, frequency="semanal"), Row(id=3, frequency="anual")]
UNITS = [Row(id=10, name="A", code="A", description=None), Row(id=11, name="B", code="B", description=None)]


def _task(id, status, unit_id=10, routine_id=1, assigned_to=None):
    return Row(id=id, status=status, unit_id=unit_id, routine_id=routine_id, assigned_to=assigned_to)


def test_unit_routine_status_groups_by_frequency():
    tasks = [
        _task(1, "concluida"),
        _task(2, "pendente"),
        _task(3, "concluida", routine_id=2),
        _task(4, "concluida", routine_id=3),  # frequência fora do painel
        _task(5, "concluida", routine_id=None),
    ]
    result = dashboard.unit_routine_status(UNITS, ROUTINES, tasks)

    assert [r["id"] for r in result] == [10]  # unidade B sem tarefas fica de fora
    row = result[0]
    assert row["frequencies"]["diaria"]["total"] == 2
    assert row["frequencies"]["diaria"]["percentage"] == 50
    assert row["frequencies"]["semanal"]["completed"] == 1
    assert row["frequencies"]["mensal"]["total"] == 0
    assert row["totals"] == {"completed": 2, "pending": 1, "total": 3, "percentage": 67, "bucket": "warning"}


def test_responsible_routine_status_ignores_unassigned():
    users = [Row(id=1, display_name="a@x", email="a@x"), Row(id=2, display_name="Bia", email="b@x")]
    tasks = [_task(1, "concluida", assigned_to=1), _task(2, "pendente")]
    result = dashboard.responsible_routine_status(users, ROUTINES, tasks)
    assert len(result) == 1
    assert result[0]["name"] == "a@x"
    assert result[0]["totals"]["bucket"] == "success"


def test_units_summary_omits_empty_only_when_filtered():
    tasks = [_task(1, "concluida", routine_id=None), _task(2, "atrasada", routine_id=None)]
    unfiltered = dashboard.units_summary(UNITS, tasks)
    assert [u["id"] for u in unfiltered] == [10, 11]
    assert unfiltered[1]["percentage"] == 0

    filtered = dashboard.units_summary(UNITS, tasks, sector_filtered=True)
    assert [u["id"] for u in filtered] == [10]
    assert filtered[0]["pending"] == 1


def test_overall_stats():
    stats = dashboard.overall_stats(4, [_task(1, "concluida"), _task(2, "pendente"), _task(3, "cancelada")])
    assert stats == {
        "routineCount": 4,
        "taskCount": 3,
        "completed": 1,
        "pending": 2,
        "percentage": 33,
        "bucket": "danger",
    }


def test_frequency_summary():
    summary = dashboard.frequency_summary(ROUTINES, [_task(1, "concluida"), _task(2, "concluida", routine_id=2)])
    assert list(summary["frequencies"]) == ["diaria", "semanal", "quinzenal", "mensal"]
    assert summary["totals"]["percentage"] == 100
