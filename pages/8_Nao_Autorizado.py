import streamlit as st

from src.config import setup_logging
from src.auth import PAGE_FOR, LOGIN, current_user, sign_out

st.set_page_config(page_title="Acesso não autorizado • Eva", layout="centered")
setup_logging()

if not current_user():
    st.switch_page(PAGE_FOR[LOGIN])

with st.container(border=True):
    st.header("Acesso não autorizado")
    st.write("Seu perfil não tem permissão para acessar o Painel do Gestor.")
    st.caption("Verifique se `role` é `admin` ou `gestor`.")
    if st.button("Sair"):
        sign_out()
        st.switch_page(PAGE_FOR[LOGIN])
