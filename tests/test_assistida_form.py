from datetime import date, datetime

import pytest

from src.config import timezone
from src.assistida_form import (
    FormError,
    build_payload,
    form_from_record,
    parse_float_or_none,
    parse_int_or_none,
    tem_beneficio,
    tri_from_select,
)

NOW = datetime(2024, 3, 10, 14, 30, tzinfo=timezone())


@pytest.fixture
def form():
    return {
        "nome_completo": "  Maria da Silva ",
        "idade": "34",
        "cpf": "   ",
        "cidade": "Arapiraca",
        "possui_filhos": "Não",
        "quantidade_filhos": "2",
        "faixa_etaria_filhos": "18+",
        "possui_filhos_com_agressor": "Sim",
        "quantidade_filhos_com_agressor": "1",
        "beneficio_governo": "Não",
        "possui_nis": "Sim",
        "numero_nis": "123",
        "tipos_violencia_sofrida": ["Psicológica", "Física"],
        "grau_risco": "Alto",
        "latitude": "-9,75",
        "longitude": "abc",
        "data_validade_medida": date(2024, 5, 1),
    }


def test_nome_obrigatorio():
    with pytest.raises(FormError):
        build_payload({"nome_completo": "   "}, is_edit=False, now=NOW)


def test_create_payload(form):
    p = build_payload(form, is_edit=False, now=NOW)

    assert p["nome_completo"] == "Maria da Silva"
    assert p["idade"] == 34
    assert p["cpf"] is None
    assert p["cidade"] == "Arapiraca"

    # filhos = Não: campos dependentes zerados
    assert p["possui_filhos"] is False
    assert p["quantidade_filhos"] is None
    assert p["faixa_etaria_filhos"] is None
    assert p["possui_filhos_com_agressor"] is True
    assert p["quantidade_filhos_com_agressor"] == "1"

    # sem benefício não há NIS
    assert p["possui_nis"] is None
    assert p["numero_nis"] is None

    assert p["tipos_violencia_sofrida"] == ["Física", "Psicológica"]
    assert p["latitude"] == -9.75
    assert p["longitude"] is None
    assert p["data_validade_medida"] == datetime(2024, 5, 1, tzinfo=timezone())

    assert p["ativa"] is True
    assert p["data_avaliacao_risco"] == NOW


def test_create_without_risk_has_no_evaluation_date(form):
    form["grau_risco"] = ""
    p = build_payload(form, is_edit=False, now=NOW)
    assert p["grau_risco"] is None
    assert p["data_avaliacao_risco"] is None


def test_nis_only_with_benefit(form):
    form["beneficio_governo"] = "Bolsa Família"
    form["numero_nis"] = " 999 "
    p = build_payload(form, is_edit=False, now=NOW)
    assert p["possui_nis"] is True
    assert p["numero_nis"] == "999"

    form["possui_nis"] = "Não"
    p = build_payload(form, is_edit=False, now=NOW)
    assert p["possui_nis"] is False
    assert p["numero_nis"] is None


def test_edit_keeps_status_and_evaluation_date(form):
    p = build_payload(form, is_edit=True, now=NOW)
    assert "ativa" not in p
    assert "data_avaliacao_risco" not in p


def test_parsers():
    assert parse_int_or_none("3.7") == 3
    assert parse_int_or_none("x") is None
    assert parse_int_or_none("") is None
    assert parse_float_or_none("1,5") == 1.5
    assert parse_float_or_none("inf") is None
    assert tri_from_select("Sim") is True
    assert tri_from_select("Não") is False
    assert tri_from_select("") is None
    assert tem_beneficio(None) is False
    assert tem_beneficio("Outro") is True


def test_form_from_record():
    row = {
        "nome_completo": "Maria",
        "idade": 34,
        "possui_filhos": True,
        "possui_nis": False,
        "beneficio_governo": None,
        "tipos_violencia_sofrida": None,
        "data_validade_medida": datetime(2024, 5, 1, tzinfo=timezone()),
        "latitude": -9.75,
    }
    f = form_from_record(row)

    assert f["idade"] == "34"
    assert f["possui_filhos"] == "Sim"
    assert f["possui_nis"] == "Não"
    assert f["possui_filhos_com_agressor"] == ""
    assert f["beneficio_governo"] == "Não"
    assert f["tipos_violencia_sofrida"] == []
    assert f["data_validade_medida"] == date(2024, 5, 1)
    assert f["latitude"] == "-9.75"
    assert f["cpf"] == ""


def test_empty_form_for_new_record():
    f = form_from_record(None)
    assert f["nome_completo"] == ""
    assert f["data_validade_medida"] is None
