import logging

import streamlit as st
import psycopg2
from psycopg2.extras import RealDictCursor

from src.config import database_url

logger = logging.getLogger(__name__)


@st.cache_resource
def get_conn():
    """
    Abre uma conexão persistente com o Postgres do Supabase usando a URL do st.secrets.
    cache_resource evita abrir conexão a cada rerun do Streamlit.
    """
    conn = psycopg2.connect(
        database_url(),
        cursor_factory=RealDictCursor
    )

    # Muitas leituras e reruns: sem transação aberta entre um rerun e outro.
    conn.autocommit = True
    return conn


def _rollback(conn):
    # Essencial quando a conexão é reaproveitada (cache_resource)
    try:
        conn.rollback()
    except psycopg2.Error:
        logger.warning("Rollback falhou; a conexão pode estar fechada.")


def fetch_df(sql: str, params=None):
    """
    Executa SELECT e retorna lista de dicts (bom para virar DataFrame).
    Se uma query falhar, faz rollback para não "quebrar" a conexão cacheada.
    """
    conn = get_conn()
    try:
        with conn.cursor() as cur:
            cur.execute(sql, params or {})
            return [dict(r) for r in cur.fetchall()]
    except Exception:
        logger.exception("Falha na consulta")
        _rollback(conn)
        raise


def fetch_one(sql: str, params=None):
    rows = fetch_df(sql, params)
    return rows[0] if rows else None


def execute(sql: str, params=None):
    """Executa um comando de escrita. Retorna a linha do RETURNING, se houver."""
    conn = get_conn()
    try:
        with conn.cursor() as cur:
            cur.execute(sql, params or {})
            if cur.description is None:
                return None
            row = cur.fetchone()
            return dict(row) if row is not None else None
    except Exception:
        logger.exception("Falha ao gravar")
        _rollback(conn)
        raise
