import streamlit as st

from src.auth import sign_out, PAGE_FOR, LOGIN

PAGES = {
    "Dashboard": "pages/0_Dashboard.py",
    "Assistidas": "pages/1_Assistidas.py",
    "Agenda planejada": "pages/3_Agenda_Planejada.py",
    "Visitas": "pages/4_Visitas.py",
    "Mapa": "pages/5_Mapa.py",
    "Relatório por período": "pages/6_Relatorio_Periodo.py",
}


def user_label(profile) -> str:
    profile = profile or {}
    user = st.session_state.get("user") or {}
    nome = profile.get("nome_guerra") or user.get("email") or "—"
    role = profile.get("role") or "guarnicao"
    return f"{nome} · {role}"


def render_sidebar_menu(profile=None):
    with st.sidebar:
        options = list(PAGES.keys())

        current = st.session_state.get("current_page", "Dashboard")
        if current not in options:
            current = "Dashboard"

        st.sidebar.title("🛡️ Eva")
        st.caption("Painel do Gestor · Patrulha Maria da Penha")

        selected = st.radio(
            "Ir para:",
            options,
            index=options.index(current),
            key="nav_selected",
        )

        st.divider()
        st.caption(user_label(profile))
        sair = st.button("Sair", use_container_width=True, key="nav_logout")

    if sair:
        sign_out()
        st.switch_page(PAGE_FOR[LOGIN])

    if selected != current:
        st.session_state["current_page"] = selected
        st.switch_page(PAGES[selected])
