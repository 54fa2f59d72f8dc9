import streamlit as st

from src.config import setup_logging
from src.auth import (
    DASHBOARD,
    LOGIN,
    OK,
    PAGE_FOR,
    load_current_profile,
    resolve_access,
    sign_out,
)

st.set_page_config(page_title="Perfil não encontrado • Eva", layout="centered")
setup_logging()

user, profile, error = load_current_profile()
if not user:
    st.switch_page(PAGE_FOR[LOGIN])

# O perfil apareceu: redireciona para o lugar correto
if profile:
    access = resolve_access(user, profile)
    st.switch_page(PAGE_FOR[DASHBOARD if access == OK else access])

with st.container(border=True):
    if error:
        st.header("Erro ao carregar perfil")
        st.error(error)
    else:
        st.header("Perfil não encontrado")
        st.write("Você fez login, mas não existe um registro para o seu usuário na tabela `profiles`.")
        st.caption(f"UID: `{user['id']}`")
        st.caption("Crie o perfil e configure `ativo` e `role` (veja `tools/ativar_usuario.py`).")

    c1, c2, _ = st.columns([1, 1, 3])
    with c1:
        if st.button("Verificar novamente", type="primary"):
            st.rerun()
    with c2:
        if st.button("Sair"):
            sign_out()
            st.switch_page(PAGE_FOR[LOGIN])
