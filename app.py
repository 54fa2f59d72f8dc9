import logging

import streamlit as st

from src.config import setup_logging, ConfigError
from src.auth import (
    AuthError,
    PAGE_FOR,
    LOGIN,
    current_user,
    load_current_profile,
    resolve_login_redirect,
    sign_in,
)

st.set_page_config(page_title="Eva — Painel do Gestor", page_icon="🛡️", layout="centered")
setup_logging()
logger = logging.getLogger("app")


def go_after_login():
    user, profile, error = load_current_profile()
    if error:
        st.error(f"Erro ao carregar perfil: {error}")
        st.stop()
    target = resolve_login_redirect(user, profile)
    if target != LOGIN:
        st.switch_page(PAGE_FOR[target])


# Já logado: segue direto
if current_user():
    go_after_login()

st.title("🛡️ Eva — Painel do Gestor")
st.caption("Patrulha Maria da Penha · acesso restrito a gestores e administradores")

with st.form("login", border=True):
    email = st.text_input("E-mail", key="login_email")
    senha = st.text_input("Senha", type="password", key="login_senha")
    entrar = st.form_submit_button("Entrar", type="primary", use_container_width=True)

if entrar:
    if not email.strip() or not senha:
        st.warning("Informe e-mail e senha.")
        st.stop()
    try:
        with st.spinner("Entrando..."):
            sign_in(email, senha)
    except AuthError as e:
        st.error(f"Falha no login: {e}")
        st.stop()
    except ConfigError as e:
        logger.error("Configuração incompleta: %s", e)
        st.error(str(e))
        st.stop()
    go_after_login()
