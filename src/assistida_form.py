"""
Cadastro/edição de assistida: listas de opções do formulário e conversão
formulário <-> registro da tabela public.assistidas.
"""
from __future__ import annotations

import math
from datetime import date, datetime

from src.helpers import parse_millis, safe_str, start_of_day, to_local

CIDADES = ["Arapiraca", "Craíbas", "Coité do Nóia", "Feira Grande", "Limoeiro de Anadia", "Taquarana"]

LOCAIS_FISCALIZACAO = ["Residência", "Trabalho", "Escola/Creche", "Unidade de Saúde", "Via pública", "Outro"]
TURNOS_FISCALIZACAO = ["Manhã", "Tarde", "Noite", "Madrugada", "Indiferente"]

ESTADOS_CIVIS = ["Solteira", "Casada", "União estável", "Separada", "Divorciada", "Viúva"]

QTD_FILHOS = ["0", "1", "2", "3", "4", "5+"]
FAIXAS_ETARIAS_FILHOS = ["(0 a 4 anos)", "5 a 10 anos", "11 a 13 anos", "14 a 17 anos", "18+"]

RESPONSAVEL_SUSTENTO = [
    "A Própria",
    "O Agressor",
    "Pai/Mãe",
    "Outros familiares",
    "Benefícios/Programas sociais",
    "Outra pessoa",
]

BENEFICIOS_GOVERNO = [
    "Não",
    "Bolsa Família",
    "Benefício de Prestação Continuada",
    "Minha Casa Minha Vida",
    "Primeiro Passo",
    "Outro",
]

TIPOS_VIOLENCIA = ["Física", "Psicológica", "Moral", "Sexual", "Patrimonial"]
GRAU_RISCO = ["Baixo", "Médio", "Alto"]

SIM_NAO = ["", "Sim", "Não"]

# campos de texto livre: chave do formulário == coluna
TEXT_FIELDS = [
    "rg", "cpf", "telefone_principal", "telefone_alternativo",
    "cidade", "guarnicao_pmp", "bairro", "logradouro", "numero",
    "numero_processo", "local_fiscalizacao", "melhor_turno_fiscalizacao",
    "estado_civil", "profissao", "local_trabalho", "principal_responsavel_sustento",
    "beneficio_governo", "local_agressao", "grau_risco",
]


class FormError(ValueError):
    pass


def clean_text(v) -> str | None:
    t = safe_str(v)
    return t or None


def parse_int_or_none(v) -> int | None:
    t = safe_str(v)
    if not t:
        return None
    try:
        n = float(t)
    except ValueError:
        return None
    return int(n) if math.isfinite(n) else None


def parse_float_or_none(v) -> float | None:
    t = safe_str(v).replace(",", ".")
    if not t:
        return None
    try:
        n = float(t)
    except ValueError:
        return None
    return n if math.isfinite(n) else None


def tem_beneficio(beneficio) -> bool:
    b = safe_str(beneficio) or "Não"
    return b != "Não"


def tri_from_select(v) -> bool | None:
    if v == "Sim":
        return True
    if v == "Não":
        return False
    return None


def tri_to_select(v) -> str:
    if v is True:
        return "Sim"
    if v is False:
        return "Não"
    return ""


def build_payload(form: dict, is_edit: bool, now: datetime) -> dict:
    nome = safe_str(form.get("nome_completo"))
    if not nome:
        raise FormError("Informe o nome completo da assistida.")

    possui_filhos = tri_from_select(form.get("possui_filhos"))
    possui_filhos_agressor = tri_from_select(form.get("possui_filhos_com_agressor"))

    pode_nis = tem_beneficio(form.get("beneficio_governo"))
    possui_nis = tri_from_select(form.get("possui_nis")) if pode_nis else None

    validade = form.get("data_validade_medida")

    payload = {c: clean_text(form.get(c)) for c in TEXT_FIELDS}
    payload.update({
        "nome_completo": nome,
        "idade": parse_int_or_none(form.get("idade")),
        "data_validade_medida": start_of_day(validade) if isinstance(validade, date) else None,

        "possui_filhos": possui_filhos,
        "quantidade_filhos": clean_text(form.get("quantidade_filhos")) if possui_filhos is True else None,
        "faixa_etaria_filhos": clean_text(form.get("faixa_etaria_filhos")) if possui_filhos is True else None,

        "possui_filhos_com_agressor": possui_filhos_agressor,
        "quantidade_filhos_com_agressor": (
            clean_text(form.get("quantidade_filhos_com_agressor")) if possui_filhos_agressor is True else None
        ),

        "possui_nis": possui_nis,
        "numero_nis": clean_text(form.get("numero_nis")) if pode_nis and possui_nis is True else None,

        "tipos_violencia_sofrida": sorted(set(form.get("tipos_violencia_sofrida") or [])),

        "latitude": parse_float_or_none(form.get("latitude")),
        "longitude": parse_float_or_none(form.get("longitude")),
    })

    # Na edição, data da avaliação de risco e status ficam como estão
    if not is_edit:
        payload["data_avaliacao_risco"] = now if payload["grau_risco"] else None
        payload["ativa"] = True

    return payload


def form_from_record(row: dict | None) -> dict:
    row = row or {}
    form = {c: safe_str(row.get(c)) for c in TEXT_FIELDS}

    ms = parse_millis(row.get("data_validade_medida"))
    form.update({
        "nome_completo": safe_str(row.get("nome_completo")),
        "idade": safe_str(row.get("idade")),
        "data_validade_medida": to_local(ms).date() if ms else None,
        "possui_filhos": tri_to_select(row.get("possui_filhos")),
        "quantidade_filhos": safe_str(row.get("quantidade_filhos")),
        "faixa_etaria_filhos": safe_str(row.get("faixa_etaria_filhos")),
        "possui_filhos_com_agressor": tri_to_select(row.get("possui_filhos_com_agressor")),
        "quantidade_filhos_com_agressor": safe_str(row.get("quantidade_filhos_com_agressor")),
        "beneficio_governo": safe_str(row.get("beneficio_governo")) or "Não",
        "possui_nis": tri_to_select(row.get("possui_nis")),
        "numero_nis": safe_str(row.get("numero_nis")),
        "tipos_violencia_sofrida": list(row.get("tipos_violencia_sofrida") or []),
        "latitude": safe_str(row.get("latitude")),
        "longitude": safe_str(row.get("longitude")),
    })
    return form
