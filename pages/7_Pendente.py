import streamlit as st

from src.config import setup_logging
from src.auth import PAGE_FOR, LOGIN, load_current_profile, resolve_pending_redirect, sign_out

st.set_page_config(page_title="Acesso pendente • Eva", layout="centered")
setup_logging()

user, profile, error = load_current_profile()
if not user:
    st.switch_page(PAGE_FOR[LOGIN])

# Já ativado: segue para o lugar certo
target = resolve_pending_redirect(profile)
if target:
    st.switch_page(PAGE_FOR[target])

with st.container(border=True):
    st.header("Acesso pendente")
    st.write("Sua conta está autenticada, mas o seu perfil não está ativo no sistema.")
    if error:
        st.error(f"Erro ao carregar perfil: {error}")
    st.caption(f"UID: `{user['id']}`")
    st.caption(f"Ativo: **{'Sim' if (profile or {}).get('ativo') else 'Não'}**")
    st.caption("Solicite ao administrador a ativação do perfil (tabela `profiles`).")

    c1, c2, _ = st.columns([1, 1, 3])
    with c1:
        if st.button("Verificar novamente", type="primary"):
            st.rerun()
    with c2:
        if st.button("Sair"):
            sign_out()
            st.switch_page(PAGE_FOR[LOGIN])
