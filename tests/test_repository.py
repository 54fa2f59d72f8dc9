import pytest

import src.repository as repo
from src.config import TODAS


class FakeDb:
    """Registra as consultas e devolve respostas pré-definidas em ordem."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def __call__(self, sql, params=None):
        self.calls.append((sql, params))
        return self.responses.pop(0) if self.responses else []


@pytest.fixture
def no_cache_clear(monkeypatch):
    cleared = []
    monkeypatch.setattr(repo, "clear_caches", lambda: cleared.append(True))
    return cleared


def test_agendas_dia_todas_uses_single_day_query(monkeypatch):
    db = FakeDb([{"id": "b", "ordem": 2}, {"id": "a", "ordem": 1}])
    monkeypatch.setattr(repo, "fetch_df", db)

    rows = repo.fetch_agendas_dia("2024-03-10", TODAS)

    assert [r["id"] for r in rows] == ["a", "b"]
    assert len(db.calls) == 1
    assert db.calls[0][1] == {"dia": "2024-03-10"}


def test_agendas_dia_by_key(monkeypatch):
    db = FakeDb([{"id": "x", "ordem": 5, "guarnicao": "PMP Alfa"}])
    monkeypatch.setattr(repo, "fetch_df", db)

    rows = repo.fetch_agendas_dia("2024-03-10", "PMP Alfa")

    assert [r["id"] for r in rows] == ["x"]
    assert len(db.calls) == 1
    assert db.calls[0][1] == {"chave": "2024-03-10|PMP Alfa"}


def test_agendas_dia_falls_back_to_day_filter(monkeypatch):
    by_day = [
        {"id": "1", "ordem": 30, "guarnicao": "PMP Alfa"},
        {"id": "2", "ordem": 10, "guarnicao": "PMP Bravo"},
        {"id": "3", "ordem": None, "guarnicao": " PMP Alfa "},
        {"id": "4", "ordem": 20, "guarnicao": "PMP Alfa"},
    ]
    db = FakeDb([], by_day)
    monkeypatch.setattr(repo, "fetch_df", db)

    rows = repo.fetch_agendas_dia("2024-03-10", "PMP Alfa")

    assert len(db.calls) == 2
    assert db.calls[1][1] == {"dia": "2024-03-10"}
    assert [r["id"] for r in rows] == ["3", "4", "1"]


def test_insert_agenda_params(monkeypatch, no_cache_clear):
    captured = {}

    def fake_execute(sql, params=None):
        captured.update(params)
        return {"id": "new-id"}

    monkeypatch.setattr(repo, "execute", fake_execute)
    monkeypatch.setattr(repo, "now_ms", lambda: 1710000000000)

    new_id = repo.insert_agenda("2024-03-10", " PMP Bravo ", "ass-1", "Rotina", "   ")

    assert new_id == "new-id"
    assert captured == {
        "data_dia": "2024-03-10",
        "guarnicao": "PMP Bravo",
        "chave": "2024-03-10|PMP Bravo",
        "id_assistida": "ass-1",
        "tipo_visita": "Rotina",
        "observacoes": None,
        "ordem": 1710000000000,
    }
    assert no_cache_clear == [True]


def test_delete_agenda_clears_cache(monkeypatch, no_cache_clear):
    db = FakeDb()
    monkeypatch.setattr(repo, "execute", db)

    repo.delete_agenda("abc")

    assert db.calls[0][1] == {"id": "abc"}
    assert no_cache_clear == [True]


def test_visitas_page_has_more(monkeypatch):
    rows = [{"id": str(i), "data_hora": i} for i in range(4)]
    db = FakeDb(rows)
    monkeypatch.setattr(repo, "fetch_df", db)

    page, has_more = repo.fetch_visitas_page("s", "e", page_size=3)

    assert [r["id"] for r in page] == ["0", "1", "2"]
    assert has_more is True
    sql, params = db.calls[0]
    assert params["limit"] == 4
    assert "houve_descumprimento =" not in sql
    assert "guarnicao" not in params


def test_visitas_page_last_page(monkeypatch):
    db = FakeDb([{"id": "0", "data_hora": 0}])
    monkeypatch.setattr(repo, "fetch_df", db)

    page, has_more = repo.fetch_visitas_page("s", "e", page_size=3)

    assert len(page) == 1
    assert has_more is False


def test_visitas_page_filters_and_cursor(monkeypatch):
    db = FakeDb([])
    monkeypatch.setattr(repo, "fetch_df", db)

    repo.fetch_visitas_page(
        "s", "e",
        guarnicao="PMP Delta",
        descumprimento="com",
        after={"id": "v9", "data_hora": "2024-03-10T10:00:00-03:00"},
    )

    sql, params = db.calls[0]
    assert "houve_descumprimento = true" in sql
    assert "(data_hora, id::text) <" in sql
    assert params["guarnicao"] == "PMP Delta"
    assert params["after_id"] == "v9"
    assert params["after_ts"] == "2024-03-10T10:00:00-03:00"


def test_visitas_page_sem_descumprimento(monkeypatch):
    db = FakeDb([])
    monkeypatch.setattr(repo, "fetch_df", db)

    repo.fetch_visitas_page("s", "e", descumprimento="sem")

    assert "houve_descumprimento = false" in db.calls[0][0]


def test_assistidas_by_ids(monkeypatch):
    db = FakeDb([{"id": "a", "nome_completo": "Ana"}])
    monkeypatch.setattr(repo, "fetch_df", db)

    assert repo.fetch_assistidas_by_ids([]) == {}
    assert db.calls == []

    out = repo.fetch_assistidas_by_ids(["a", "", None, "a"])
    assert out == {"a": {"id": "a", "nome_completo": "Ana"}}
    assert db.calls[0][1] == {"ids": ["a"]}


def test_update_assistida_only_known_columns(monkeypatch, no_cache_clear):
    db = FakeDb()
    monkeypatch.setattr(repo, "execute", db)

    repo.update_assistida("id-1", {"nome_completo": "Ana", "campo_estranho": 1})

    sql, params = db.calls[0]
    assert params == {"nome_completo": "Ana", "_id": "id-1"}
    assert "campo_estranho" not in sql
    assert no_cache_clear == [True]


def test_report_queries_use_report_limits(monkeypatch):
    db = FakeDb([], [])
    monkeypatch.setattr(repo, "fetch_df", db)

    repo.fetch_agendas_range.__wrapped__("2024-01-01", "2024-12-31", limit=repo.REPORT_AGENDAS_LIMIT)
    repo.fetch_visitas_between.__wrapped__("s", "e", limit=repo.REPORT_VISITAS_LIMIT)

    assert db.calls[0][1]["limit"] == 20000
    assert db.calls[1][1]["limit"] == 25000


def test_planner_lists_every_assistida(monkeypatch):
    db = FakeDb([])
    monkeypatch.setattr(repo, "fetch_df", db)

    repo.fetch_assistidas.__wrapped__(repo.PLANNER_ASSISTIDAS_LIMIT)

    sql, params = db.calls[0]
    assert params == {"limit": 500}
    assert "ativa" not in sql
    assert "order by nome_completo" in sql


def test_insert_assistida_passes_list_columns_as_is(monkeypatch, no_cache_clear):
    db = FakeDb({"id": "new"})
    monkeypatch.setattr(repo, "execute", db)

    assert repo.insert_assistida({"nome_completo": "Ana", "tipos_violencia_sofrida": ["Física"]}) == "new"

    _, params = db.calls[0]
    assert params == {"nome_completo": "Ana", "tipos_violencia_sofrida": ["Física"]}
