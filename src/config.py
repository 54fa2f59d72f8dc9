import os
import logging
from functools import lru_cache
from zoneinfo import ZoneInfo

import streamlit as st
from dotenv import load_dotenv

load_dotenv()

GUARNICOES = ["PMP Alfa", "PMP Bravo", "PMP Charlie", "PMP Delta"]
TODAS = "Todas"

ROLES_GESTAO = ("admin", "gestor")

TIPOS_VISITA = ["Rondas", "Contato Telefônico", "Visita Presencial"]

PERIODOS = {
    "hoje": "Hoje",
    "7d": "7 dias",
    "30d": "30 dias",
}

_logging_ready = False


class ConfigError(RuntimeError):
    pass


def get_setting(section: str, key: str, env: str, default=None):
    """
    Lê uma configuração do st.secrets ([section] key) e cai para a variável
    de ambiente `env` (o .env é carregado no import) quando não existir.
    """
    try:
        value = st.secrets[section][key]
    except (KeyError, FileNotFoundError):
        value = None

    if value in (None, ""):
        value = os.environ.get(env, default)
    return value


def require_setting(section: str, key: str, env: str) -> str:
    value = get_setting(section, key, env)
    if not value:
        raise ConfigError(f"Configuração ausente: [{section}] {key} (ou variável {env})")
    return value


def database_url() -> str:
    return require_setting("database", "url", "DATABASE_URL")


def supabase_url() -> str:
    return require_setting("supabase", "url", "SUPABASE_URL")


def supabase_key() -> str:
    return require_setting("supabase", "anon_key", "SUPABASE_ANON_KEY")


def storage_bucket() -> str:
    return get_setting("supabase", "bucket", "SUPABASE_BUCKET", "assistidas")


@lru_cache(maxsize=1)
def timezone() -> ZoneInfo:
    return ZoneInfo(get_setting("app", "timezone", "APP_TIMEZONE", "America/Maceio"))


def setup_logging():
    global _logging_ready
    if _logging_ready:
        return
    level = str(get_setting("app", "log_level", "LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    _logging_ready = True
