import logging
from datetime import datetime

import streamlit as st

from src.config import TODAS
from src.db import fetch_df, fetch_one, execute
from src.helpers import safe_str, now_ms, to_local

logger = logging.getLogger(__name__)

ASSISTIDAS_LIMIT = 200
RANGE_LIMIT = 5000
VISITAS_PAGE_SIZE = 30

# Relatório por período: o intervalo é livre, então os tetos são maiores
REPORT_AGENDAS_LIMIT = 20000
REPORT_VISITAS_LIMIT = 25000

# Planejador da agenda: todas as assistidas por nome
PLANNER_ASSISTIDAS_LIMIT = 500

_AGENDA_COLUMNS = """
  id::text as id,
  data_dia::text as data_dia,
  guarnicao,
  chave_dia_guarnicao,
  id_assistida::text as id_assistida,
  tipo_visita,
  observacoes,
  ordem
"""

_VISITA_COLUMNS = """
  id::text as id,
  id_assistida::text as id_assistida,
  id_autor,
  data_hora,
  guarnicao,
  houve_descumprimento,
  detalhes_descumprimento,
  situacao_encontrada,
  observacoes_gerais,
  latitude,
  longitude
"""

# Colunas gravadas pelo formulário (nome -> nome na tabela)
ASSISTIDA_FIELDS = [
    "nome_completo", "idade", "rg", "cpf",
    "telefone_principal", "telefone_alternativo",
    "cidade", "guarnicao_pmp", "bairro", "logradouro", "numero",
    "numero_processo", "data_validade_medida",
    "local_fiscalizacao", "melhor_turno_fiscalizacao", "estado_civil",
    "possui_filhos", "quantidade_filhos", "faixa_etaria_filhos",
    "possui_filhos_com_agressor", "quantidade_filhos_com_agressor",
    "profissao", "local_trabalho", "principal_responsavel_sustento",
    "beneficio_governo", "possui_nis", "numero_nis",
    "tipos_violencia_sofrida", "local_agressao",
    "grau_risco", "data_avaliacao_risco",
    "latitude", "longitude", "foto_url", "ativa",
]


def clear_caches():
    """Depois de qualquer escrita: as telas voltam a ler do banco."""
    st.cache_data.clear()


def chave_dia_guarnicao(dia: str, guarnicao: str) -> str:
    return f"{dia}|{guarnicao}"


# ----------------------------
# Perfis (users)
# ----------------------------

def fetch_profile(user_id: str):
    sql = """
    select user_id::text as user_id, role, ativo, nome_guerra, numero_ordem
    from public.profiles
    where user_id = %(user_id)s;
    """
    return fetch_one(sql, {"user_id": user_id})


# ----------------------------
# Assistidas
# ----------------------------

@st.cache_data(ttl=60)
def fetch_assistidas(limit: int = ASSISTIDAS_LIMIT):
    sql = """
    select *, id::text as id
    from public.assistidas
    order by nome_completo
    limit %(limit)s;
    """
    return fetch_df(sql, {"limit": limit})


@st.cache_data(ttl=60)
def fetch_assistidas_ativas(limit: int = RANGE_LIMIT):
    sql = """
    select *, id::text as id
    from public.assistidas
    where ativa = true
    limit %(limit)s;
    """
    return fetch_df(sql, {"limit": limit})


def fetch_assistidas_by_ids(ids) -> dict:
    ids = sorted({safe_str(i) for i in ids if safe_str(i)})
    if not ids:
        return {}
    sql = """
    select id::text as id, nome_completo, numero_processo, grau_risco
    from public.assistidas
    where id::text = any(%(ids)s);
    """
    rows = fetch_df(sql, {"ids": ids})
    return {r["id"]: r for r in rows}


def fetch_assistida(assistida_id: str):
    sql = """
    select *, id::text as id
    from public.assistidas
    where id::text = %(id)s;
    """
    return fetch_one(sql, {"id": assistida_id})


def insert_assistida(payload: dict) -> str:
    cols = [c for c in ASSISTIDA_FIELDS if c in payload]
    sql = f"""
    insert into public.assistidas ({', '.join(cols)})
    values ({', '.join(f'%({c})s' for c in cols)})
    returning id::text as id;
    """
    row = execute(sql, {c: payload[c] for c in cols})
    clear_caches()
    logger.info("Assistida criada: %s", row["id"])
    return row["id"]


def update_assistida(assistida_id: str, payload: dict):
    cols = [c for c in ASSISTIDA_FIELDS if c in payload]
    if not cols:
        return
    params = {c: payload[c] for c in cols}
    params["_id"] = assistida_id
    sql = f"""
    update public.assistidas
    set {', '.join(f'{c} = %({c})s' for c in cols)}
    where id::text = %(_id)s;
    """
    execute(sql, params)
    clear_caches()
    logger.info("Assistida atualizada: %s", assistida_id)


def set_assistida_foto(assistida_id: str, url: str):
    update_assistida(assistida_id, {"foto_url": url})


# ----------------------------
# Agenda planejada
# ----------------------------

@st.cache_data(ttl=60)
def fetch_agendas_range(start_key: str, end_key: str, guarnicao: str = TODAS, limit: int = RANGE_LIMIT):
    where = ["data_dia between %(start)s and %(end)s"]
    params = {"start": start_key, "end": end_key, "limit": limit}

    if guarnicao != TODAS:
        where.append("guarnicao = %(guarnicao)s")
        params["guarnicao"] = guarnicao

    sql = f"""
    select {_AGENDA_COLUMNS}
    from public.agendas_planejadas
    where {' and '.join(where)}
    order by data_dia asc
    limit %(limit)s;
    """
    return fetch_df(sql, params)


def fetch_agendas_dia(dia: str, guarnicao: str = TODAS):
    """
    Itens planejados do dia. Com guarnição: busca pela chave "dia|guarnição";
    se a chave não trouxer nada (docs antigos sem chave), cai para o dia inteiro
    filtrando a guarnição em memória.
    """
    by_day_sql = f"""
    select {_AGENDA_COLUMNS}
    from public.agendas_planejadas
    where data_dia = %(dia)s;
    """

    if guarnicao == TODAS:
        rows = fetch_df(by_day_sql, {"dia": dia})
    else:
        sql = f"""
        select {_AGENDA_COLUMNS}
        from public.agendas_planejadas
        where chave_dia_guarnicao = %(chave)s;
        """
        rows = fetch_df(sql, {"chave": chave_dia_guarnicao(dia, guarnicao)})
        if not rows:
            rows = [
                r for r in fetch_df(by_day_sql, {"dia": dia})
                if safe_str(r.get("guarnicao")) == guarnicao
            ]

    return sorted(rows, key=lambda r: r.get("ordem") or 0)


def insert_agenda(dia: str, guarnicao: str, id_assistida: str, tipo_visita: str, observacoes: str | None = None) -> str:
    g = safe_str(guarnicao)
    obs = safe_str(observacoes)
    params = {
        "data_dia": dia,
        "guarnicao": g,
        "chave": chave_dia_guarnicao(dia, g),
        "id_assistida": id_assistida,
        "tipo_visita": tipo_visita,
        "observacoes": obs or None,
        "ordem": now_ms(),
    }
    sql = """
    insert into public.agendas_planejadas
      (data_dia, guarnicao, chave_dia_guarnicao, id_assistida, tipo_visita, observacoes, ordem)
    values
      (%(data_dia)s, %(guarnicao)s, %(chave)s, %(id_assistida)s, %(tipo_visita)s, %(observacoes)s, %(ordem)s)
    returning id::text as id;
    """
    row = execute(sql, params)
    clear_caches()
    logger.info("Agenda planejada: %s %s assistida=%s", dia, g, id_assistida)
    return row["id"]


def delete_agenda(agenda_id: str):
    execute("delete from public.agendas_planejadas where id::text = %(id)s;", {"id": agenda_id})
    clear_caches()
    logger.info("Item da agenda excluído: %s", agenda_id)


# ----------------------------
# Visitas
# ----------------------------

@st.cache_data(ttl=60)
def fetch_visitas_between(start: datetime, end_exclusive: datetime, guarnicao: str = TODAS, limit: int = RANGE_LIMIT):
    where = ["data_hora >= %(start)s", "data_hora < %(end)s"]
    params = {"start": start, "end": end_exclusive, "limit": limit}

    if guarnicao != TODAS:
        where.append("guarnicao = %(guarnicao)s")
        params["guarnicao"] = guarnicao

    sql = f"""
    select {_VISITA_COLUMNS}
    from public.visitas
    where {' and '.join(where)}
    order by data_hora asc
    limit %(limit)s;
    """
    return fetch_df(sql, params)


@st.cache_data(ttl=60)
def fetch_visitas_since(since_ms: int, limit: int = 12000):
    start = to_local(since_ms)
    sql = f"""
    select {_VISITA_COLUMNS}
    from public.visitas
    where data_hora >= %(start)s
    order by data_hora desc
    limit %(limit)s;
    """
    return fetch_df(sql, {"start": start, "limit": limit})


def fetch_visitas_page(
    start: datetime,
    end_exclusive: datetime,
    guarnicao: str = TODAS,
    descumprimento: str = "todos",
    after: dict | None = None,
    page_size: int = VISITAS_PAGE_SIZE,
):
    """
    Página de visitas (mais recentes primeiro) com paginação por cursor:
    `after` é a última linha da página anterior. Retorna (linhas, has_more).
    """
    where = ["data_hora >= %(start)s", "data_hora < %(end)s"]
    params = {"start": start, "end": end_exclusive, "limit": page_size + 1}

    if guarnicao != TODAS:
        where.append("guarnicao = %(guarnicao)s")
        params["guarnicao"] = guarnicao

    if descumprimento == "com":
        where.append("houve_descumprimento = true")
    elif descumprimento == "sem":
        where.append("houve_descumprimento = false")

    if after:
        where.append("(data_hora, id::text) < (%(after_ts)s, %(after_id)s)")
        params["after_ts"] = after["data_hora"]
        params["after_id"] = after["id"]

    sql = f"""
    select {_VISITA_COLUMNS}
    from public.visitas
    where {' and '.join(where)}
    order by data_hora desc, id::text desc
    limit %(limit)s;
    """
    rows = fetch_df(sql, params)
    return rows[:page_size], len(rows) > page_size
