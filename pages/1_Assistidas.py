import logging
import math

import streamlit as st
import pandas as pd

from src.config import setup_logging
from src.auth import require_gestor
from src.repository import fetch_assistidas, ASSISTIDAS_LIMIT
from src.helpers import format_ms, parse_millis, safe_str
from src.metrics import ASSISTIDAS_SORT_KEYS, filter_assistidas, normalize_risco_label, sort_assistidas
from ui.sidebar import render_sidebar_menu

st.set_page_config(page_title="Assistidas • Eva", layout="wide")
setup_logging()
logger = logging.getLogger("pages.assistidas")

profile = require_gestor()
st.session_state["current_page"] = "Assistidas"
render_sidebar_menu(profile)

ROWS_PER_PAGE = 30

st.title("Assistidas")

top_l, top_r = st.columns([4, 1], vertical_alignment="bottom")
with top_r:
    if st.button("➕ Nova assistida", type="primary", use_container_width=True):
        st.session_state["assistida_edit_id"] = None
        st.switch_page("pages/2_Assistida_Form.py")

try:
    items = fetch_assistidas(ASSISTIDAS_LIMIT)
except Exception as e:
    logger.exception("Falha ao carregar assistidas")
    st.error(f"Erro ao carregar assistidas: {e}")
    st.stop()


def reset_page():
    st.session_state["ass_page"] = 0


with st.container(border=True):
    c_search, c_sort, c_dir = st.columns([3, 1.4, 1], vertical_alignment="bottom")
    with c_search:
        search = st.text_input(
            "Buscar (nome, processo, cidade, bairro, cpf, telefones, id...)",
            key="ass_search",
            on_change=reset_page,
        )
    with c_sort:
        sort_key = st.selectbox(
            "Ordenar por",
            list(ASSISTIDAS_SORT_KEYS.keys()),
            format_func=lambda k: ASSISTIDAS_SORT_KEYS[k],
            key="ass_sort_key",
            on_change=reset_page,
        )
    with c_dir:
        sort_dir = st.radio("Ordem", ["asc", "desc"], horizontal=True, key="ass_sort_dir", on_change=reset_page)

filtered = sort_assistidas(filter_assistidas(items, search), sort_key, desc=sort_dir == "desc")

with top_l:
    st.caption(f"**{len(filtered)}** encontrados · {len(items)} carregados (máx {ASSISTIDAS_LIMIT})")

if not filtered:
    st.info("Nenhuma assistida encontrada.")
    st.stop()

pages_total = max(1, math.ceil(len(filtered) / ROWS_PER_PAGE))
page = min(st.session_state.get("ass_page", 0), pages_total - 1)
page_rows = filtered[page * ROWS_PER_PAGE:(page + 1) * ROWS_PER_PAGE]

df_view = pd.DataFrame([
    {
        "Nome": safe_str(a.get("nome_completo")) or "—",
        "Processo": safe_str(a.get("numero_processo")) or "—",
        "Cidade / Bairro": " / ".join(x for x in (safe_str(a.get("cidade")), safe_str(a.get("bairro"))) if x) or "—",
        "Risco": normalize_risco_label(a.get("grau_risco")),
        "Validade da medida": format_ms(parse_millis(a.get("data_validade_medida"))),
        "Guarnição": safe_str(a.get("guarnicao_pmp")) or "—",
        "Ativa": "Sim" if a.get("ativa") else "Não",
    }
    for a in page_rows
])

event = st.dataframe(
    df_view,
    use_container_width=True,
    hide_index=True,
    on_select="rerun",
    selection_mode="single-row",
    key="ass_table",
)

selected = event.selection.rows if event else []

c_prev, c_info, c_next, c_edit = st.columns([1, 2, 1, 1.4], vertical_alignment="center")
with c_prev:
    if st.button("← Anterior", disabled=page == 0, use_container_width=True):
        st.session_state["ass_page"] = page - 1
        st.rerun()
with c_info:
    st.caption(f"Página {page + 1} de {pages_total}")
with c_next:
    if st.button("Próxima →", disabled=page >= pages_total - 1, use_container_width=True):
        st.session_state["ass_page"] = page + 1
        st.rerun()
with c_edit:
    if st.button("✏️ Editar selecionada", disabled=not selected, use_container_width=True):
        st.session_state["assistida_edit_id"] = page_rows[selected[0]]["id"]
        st.switch_page("pages/2_Assistida_Form.py")
