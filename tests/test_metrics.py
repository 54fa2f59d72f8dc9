from datetime import date, timedelta

import pytest

from src.helpers import DAY_MS, parse_millis, start_of_day
from src.metrics import (
    SEM_VISITAS,
    Metric,
    agenda_day_status,
    alertas_medida_vencendo,
    alertas_sem_visita,
    build_resumo_texto,
    build_visit_index,
    cumprida_guarnicao_label,
    dashboard_series,
    filter_assistidas,
    filter_visitas,
    report_metrics,
    risco_counts,
    sort_assistidas,
    sum_series,
    taxa_por_guarnicao,
    total_periodo,
    totals_by_guarnicao,
)

D1 = date(2024, 3, 4)
D2 = date(2024, 3, 5)
K1, K2 = "2024-03-04", "2024-03-05"


def at(d: date, hour: int):
    return start_of_day(d) + timedelta(hours=hour)


@pytest.fixture
def agendas():
    return [
        {"id": "a1", "data_dia": K1, "guarnicao": "PMP Alfa", "id_assistida": "A"},
        {"id": "a2", "data_dia": K1, "guarnicao": "PMP Bravo", "id_assistida": "B"},
        {"id": "a3", "data_dia": K1, "guarnicao": "PMP Alfa", "id_assistida": None},
        {"id": "a4", "data_dia": K2, "guarnicao": "PMP Charlie", "id_assistida": "C"},
    ]


@pytest.fixture
def visitas():
    return [
        {"id": "v1", "data_hora": at(D1, 10), "id_assistida": "A", "guarnicao": "PMP Alfa",
         "latitude": -9.75, "longitude": -36.66, "houve_descumprimento": True},
        {"id": "v2", "data_hora": at(D1, 11), "id_assistida": "B", "guarnicao": "PMP Alfa",
         "latitude": None, "longitude": None, "houve_descumprimento": False},
        {"id": "v3", "data_hora": at(D2, 9), "id_assistida": "X", "guarnicao": "PMP Delta"},
        # fora da janela: só conta para última visita
        {"id": "v4", "data_hora": at(date(2024, 1, 1), 9), "id_assistida": "C", "guarnicao": "PMP Charlie"},
    ]


@pytest.fixture
def idx(visitas):
    start_ms = parse_millis(start_of_day(D1))
    end_ms = parse_millis(start_of_day(date(2024, 3, 6)))
    return build_visit_index(visitas, start_ms, end_ms)


def test_visit_index_counts(idx, visitas):
    assert idx.visitas_por_dia == {K1: 2, K2: 1}
    assert idx.gps_por_dia == {K1: 1}
    assert idx.desc_por_dia == {K1: 1}
    assert idx.guarnicoes(K1, "B") == {"PMP Alfa"}
    assert idx.guarnicoes(K2, "C") is None
    assert idx.last_visit["C"] == parse_millis(visitas[3]["data_hora"])
    assert idx.last_visit["A"] == parse_millis(visitas[0]["data_hora"])


def test_dashboard_series_cumprida_flags(agendas, idx):
    series = dashboard_series([K1, K2], agendas, idx)

    d1, d2 = series
    assert d1["dia"] == "04/03"
    assert d1["planejadas"] == 3
    assert d1["cumpridas"] == 2
    assert d1["cumpridas_guarnicao"] == 1
    assert (d1["visitas"], d1["gps"], d1["desc"]) == (2, 1, 1)

    assert d2["planejadas"] == 1
    assert d2["cumpridas"] == 0
    assert d2["visitas"] == 1

    totais = sum_series(series)
    assert totais["planejadas"] == 4
    assert totais["taxa_geral"] == pytest.approx(0.5)
    assert totais["taxa_guarnicao"] == pytest.approx(0.25)


def test_sum_series_without_planned():
    totais = sum_series([])
    assert totais["taxa_geral"] == 0.0
    assert totais["taxa_guarnicao"] == 0.0


def test_taxa_por_guarnicao(agendas, idx):
    taxas = {t["guarnicao"]: t for t in taxa_por_guarnicao(agendas, idx)}

    assert taxas["PMP Alfa"]["planejadas"] == 2
    assert taxas["PMP Alfa"]["cumpridas"] == 1
    assert taxas["PMP Alfa"]["taxa"] == 50.0
    # visitada no dia, mas por outra guarnição
    assert taxas["PMP Bravo"]["cumpridas"] == 0
    assert taxas["PMP Delta"]["taxa"] == 0.0


def test_risco_counts_drops_zeros():
    rows = [{"grau_risco": "Alto"}, {"risco": "medio"}, {"nivel_risco": None}, {}]
    counts = {c["risco"]: c["value"] for c in risco_counts(rows)}
    assert counts == {"Alto": 1, "Médio": 1, "Sem": 2}
    names = [c["name"] for c in risco_counts(rows)]
    assert "Sem classificação" in names


def test_alertas_sem_visita():
    now = parse_millis(start_of_day(date(2024, 6, 1)))
    assistidas = [
        {"id": "A", "nome_completo": "Ana", "grau_risco": "Baixo"},
        {"id": "B", "nome_completo": "Bia", "grau_risco": "Alto"},
        {"id": "C", "nome_completo": "Carla"},
        {"id": "D", "nome_completo": "Dora"},
    ]
    last = {"A": now - 10 * DAY_MS, "B": now - 50 * DAY_MS, "D": now - 45 * DAY_MS}

    alertas = alertas_sem_visita(assistidas, last, now)

    assert [a["id"] for a in alertas] == ["C", "B", "D"]
    assert alertas[0]["dias_sem_visita"] == SEM_VISITAS
    assert alertas[0]["ultima_visita_ms"] is None
    assert alertas[1]["dias_sem_visita"] == 50
    assert alertas[1]["risco"] == "Alto"


def test_alertas_medida_vencendo():
    now = parse_millis(start_of_day(date(2024, 6, 1)))
    assistidas = [
        {"id": "A", "nome_completo": "Ana", "data_validade_medida": now + int(3.5 * DAY_MS)},
        {"id": "B", "nome_completo": "Bia", "data_validade_medida": now + 8 * DAY_MS},
        {"id": "C", "nome_completo": "Carla", "data_validade_medida": now - DAY_MS},
        {"id": "D", "nome_completo": "Dora", "data_validade_medida": now + int(0.2 * DAY_MS),
         "tipo_medida_principal": "Afastamento do lar"},
        {"id": "E", "nome_completo": "Eva"},
    ]

    alertas = alertas_medida_vencendo(assistidas, now)

    assert [a["id"] for a in alertas] == ["D", "A"]
    assert alertas[0]["dias_para_vencer"] == 1
    assert alertas[0]["tipo"] == "Afastamento do lar"
    assert alertas[1]["dias_para_vencer"] == 4
    assert alertas[1]["tipo"] == "—"


def test_agenda_day_status():
    agendas = [
        {"id": "g1", "guarnicao": "PMP Alfa", "id_assistida": "A", "tipo_visita": "Rondas"},
        {"id": "g2", "guarnicao": "PMP Bravo", "id_assistida": "B", "tipo_visita": "Visita Presencial"},
        {"id": "g3", "guarnicao": "PMP Alfa", "id_assistida": "C", "observacoes": "portão azul"},
    ]
    visitas_dia = [
        {"id_assistida": "A", "guarnicao": "PMP Alfa"},
        {"id_assistida": "B", "guarnicao": "PMP Alfa"},
    ]
    assistidas = {
        "A": {"nome_completo": "Maria Souza", "numero_processo": "0001"},
        "B": {"nome_completo": "Ana Lima"},
        "C": {"nome_completo": "Joana", "grau_risco": "Alto"},
    }

    status = agenda_day_status(agendas, visitas_dia, assistidas)
    assert status["summary"] == {"total": 3, "done_any": 2, "done_same": 1, "pendentes": 1}

    rows = {r["id"]: r for r in status["rows"]}
    assert cumprida_guarnicao_label(rows["g1"]) == "Sim"
    assert cumprida_guarnicao_label(rows["g2"]) == "Outra guarnição"
    assert cumprida_guarnicao_label(rows["g3"]) == "Não"
    assert rows["g3"]["tipo_visita"] == "—"
    assert rows["g3"]["idx"] == 3

    pend = agenda_day_status(agendas, visitas_dia, assistidas, only_pending=True)
    assert [r["id"] for r in pend["rows"]] == ["g3"]
    # o resumo ignora os filtros
    assert pend["summary"]["total"] == 3

    assert [r["id"] for r in agenda_day_status(agendas, visitas_dia, assistidas, search="souzá")["rows"]] == ["g1"]
    assert [r["id"] for r in agenda_day_status(agendas, visitas_dia, assistidas, search="PORTAO")["rows"]] == ["g3"]


@pytest.fixture
def periodo():
    agendas = [
        {"data_dia": K1, "guarnicao": "PMP Alfa", "id_assistida": "A"},
        {"data_dia": K1, "guarnicao": "alfa", "id_assistida": "B"},
        {"data_dia": K1, "guarnicao": "PMP Bravo", "id_assistida": "C"},
        {"data_dia": K1, "guarnicao": "Echo", "id_assistida": "A"},
    ]
    visitas = [
        {"data_hora": at(D1, 10), "id_assistida": "A", "guarnicao": "PMP Alfa", "houve_descumprimento": True},
        {"data_hora": at(D1, 11), "id_assistida": "A", "guarnicao": "PMP Alfa"},
        {"data_hora": at(D1, 12), "id_assistida": "C", "guarnicao": None, "equipe": "bravo"},
        {"data_hora": at(D1, 13), "id_assistida": "B", "guarnicao": "PMP Charlie"},
    ]
    return agendas, visitas


def test_report_metrics(periodo):
    agendas, visitas = periodo
    metrics = report_metrics([K1, K2], agendas, visitas)

    alfa = metrics[K1]["PMP Alfa"]
    assert alfa == Metric(
        visitas_total=2, assistidas_unicas=1, descumprimentos=1,
        agenda_planejada=2, agenda_realizada=1, agenda_nao_realizada=1,
    )

    bravo = metrics[K1]["PMP Bravo"]
    assert (bravo.visitas_total, bravo.agenda_planejada, bravo.agenda_realizada) == (1, 1, 1)

    charlie = metrics[K1]["PMP Charlie"]
    assert (charlie.visitas_total, charlie.agenda_planejada) == (1, 0)

    assert metrics[K1]["PMP Delta"].vazio
    assert all(m.vazio for m in metrics[K2].values())

    total = total_periodo(totals_by_guarnicao([K1, K2], metrics))
    assert total == Metric(4, 3, 1, 3, 2, 1)


def test_resumo_texto(periodo):
    agendas, visitas = periodo
    metrics = report_metrics([K1, K2], agendas, visitas)
    texto = build_resumo_texto(K1, K2, [K1, K2], metrics)

    assert texto.startswith("RELATÓRIO (PERÍODO) - PATRULHA MARIA DA PENHA")
    assert f"Período: {K1} a {K2}" in texto
    assert "- Visitas: 4" in texto
    assert "- Agenda não realizada: 1" in texto
    assert "• PMP Delta: SEM REGISTROS (visitas/agenda)" in texto
    assert f"DIA {K2}" in texto
    assert "  - Agenda: planejada 2 | realizada 1 | não realizada 1" in texto


def test_metric_add():
    assert Metric(1, 1, 0, 2, 1, 1) + Metric(2, 0, 1, 0, 0, 0) == Metric(3, 1, 1, 2, 1, 1)
    assert Metric().vazio


def test_filter_visitas():
    visitas = [
        {"id": "v1", "id_assistida": "A", "situacao_encontrada": "Tudo tranquilo"},
        {"id": "v2", "id_assistida": "B", "observacoes_gerais": "Agressor rondando"},
    ]
    assistidas = {"A": {"nome_completo": "Márcia"}}

    assert [v["id"] for v in filter_visitas(visitas, assistidas, "marcia")] == ["v1"]
    assert [v["id"] for v in filter_visitas(visitas, assistidas, "rondando")] == ["v2"]
    assert len(filter_visitas(visitas, assistidas, "  ")) == 2


def test_filter_and_sort_assistidas():
    rows = [
        {"id": "1", "nome_completo": "Bruna", "cidade": "Arapiraca", "data_validade_medida": 300},
        {"id": "2", "nome_completo": "Ágata", "cidade": "Craíbas", "data_validade_medida": 100},
        {"id": "3", "nome_completo": "Carla", "telefone_principal": "82999990000"},
    ]

    assert [a["id"] for a in filter_assistidas(rows, "craibas")] == ["2"]
    assert [a["id"] for a in filter_assistidas(rows, "99999")] == ["3"]

    assert [a["id"] for a in sort_assistidas(rows)] == ["2", "1", "3"]
    assert [a["id"] for a in sort_assistidas(rows, "data_validade_medida", desc=True)] == ["1", "2", "3"]


def test_report_metrics_accepts_glued_unit_names():
    agendas = [{"data_dia": K1, "guarnicao": "PMPCharlie", "id_assistida": "A"}]
    visitas = [{"data_hora": at(D1, 9), "id_assistida": "A", "guarnicao": "PMPCharlie"}]

    charlie = report_metrics([K1], agendas, visitas)[K1]["PMP Charlie"]

    assert charlie == Metric(
        visitas_total=1, assistidas_unicas=1, descumprimentos=0,
        agenda_planejada=1, agenda_realizada=1, agenda_nao_realizada=0,
    )


def test_sort_assistidas_text_that_looks_like_float():
    rows = [
        {"id": "1", "bairro": "Nan"},
        {"id": "2", "bairro": "Centro"},
        {"id": "3", "bairro": "Inf"},
        {"id": "4", "bairro": "10"},
        {"id": "5", "bairro": float("nan")},
    ]

    assert [a["id"] for a in sort_assistidas(rows, "bairro")] == ["4", "5", "2", "3", "1"]
