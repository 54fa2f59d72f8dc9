import logging

import psycopg2
import streamlit as st
from supabase import create_client, Client
from supabase import AuthError as SupabaseAuthError

from src.config import ROLES_GESTAO, ConfigError, supabase_url, supabase_key
from src.repository import fetch_profile

logger = logging.getLogger(__name__)

# Resultados possíveis da checagem de acesso
LOGIN = "login"
ERRO_PERFIL = "erro_perfil"
PERFIL_NAO_ENCONTRADO = "perfil_nao_encontrado"
PENDENTE = "pendente"
NAO_AUTORIZADO = "nao_autorizado"
OK = "ok"
DASHBOARD = "dashboard"

PAGE_FOR = {
    LOGIN: "app.py",
    DASHBOARD: "pages/0_Dashboard.py",
    PENDENTE: "pages/7_Pendente.py",
    NAO_AUTORIZADO: "pages/8_Nao_Autorizado.py",
    PERFIL_NAO_ENCONTRADO: "pages/9_Perfil_Nao_Encontrado.py",
}


class AuthError(Exception):
    pass


def get_client() -> Client:
    """
    Cliente Supabase da sessão do navegador.
    Fica no session_state (não em cache_resource) porque guarda o login do usuário.
    """
    client = st.session_state.get("_supabase")
    if client is None:
        client = create_client(supabase_url(), supabase_key())
        st.session_state["_supabase"] = client
    return client


def current_user():
    return st.session_state.get("user")


def sign_in(email: str, senha: str) -> dict:
    email = (email or "").strip()
    try:
        res = get_client().auth.sign_in_with_password({"email": email, "password": senha})
    except SupabaseAuthError as e:
        logger.warning("Login recusado para %s: %s", email, e)
        raise AuthError(str(e) or "Falha no login.") from e

    if res.user is None:
        raise AuthError("Falha no login.")

    user = {"id": res.user.id, "email": res.user.email}
    st.session_state["user"] = user
    st.session_state["access_token"] = res.session.access_token if res.session else None
    logger.info("Login: %s", email)
    return user


def sign_out():
    try:
        get_client().auth.sign_out()
    finally:
        for k in ("user", "access_token", "profile", "_supabase"):
            st.session_state.pop(k, None)


def load_profile(user_id: str):
    return fetch_profile(user_id)


def role_of(profile) -> str:
    return (profile or {}).get("role") or "guarnicao"


def resolve_access(user, profile, error: str | None = None) -> str:
    if not user:
        return LOGIN
    if error:
        return ERRO_PERFIL
    if not profile:
        return PERFIL_NAO_ENCONTRADO
    if not profile.get("ativo"):
        return PENDENTE
    if role_of(profile) not in ROLES_GESTAO:
        return NAO_AUTORIZADO
    return OK


def resolve_login_redirect(user, profile) -> str:
    """Para onde ir logo após o login (o guard do dashboard cuida do papel)."""
    if not user:
        return LOGIN
    if not profile:
        return PERFIL_NAO_ENCONTRADO
    if not profile.get("ativo"):
        return PENDENTE
    return DASHBOARD


def resolve_pending_redirect(profile) -> str | None:
    if not profile or not profile.get("ativo"):
        return None
    if role_of(profile) in ROLES_GESTAO:
        return DASHBOARD
    return NAO_AUTORIZADO


def load_current_profile():
    """(user, profile, erro). O perfil é relido a cada rerun."""
    user = current_user()
    if not user:
        return None, None, None
    try:
        return user, load_profile(user["id"]), None
    except (psycopg2.Error, ConfigError) as e:
        logger.exception("Falha ao carregar perfil de %s", user.get("email"))
        return user, None, str(e)


def require_gestor() -> dict:
    user, profile, error = load_current_profile()
    access = resolve_access(user, profile, error)

    if access == OK:
        st.session_state["profile"] = profile
        return profile

    if access == ERRO_PERFIL:
        st.error(f"Erro ao carregar perfil: {error}")
        st.stop()

    st.switch_page(PAGE_FOR[access])
