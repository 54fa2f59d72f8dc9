import logging

import streamlit as st
import pandas as pd

from src.config import GUARNICOES, PERIODOS, TODAS, setup_logging
from src.auth import require_gestor
from src.repository import fetch_assistidas_by_ids, fetch_visitas_page
from src.helpers import format_ms, make_range, maps_url, parse_millis, safe_str
from src.metrics import filter_visitas
from ui.sidebar import render_sidebar_menu

st.set_page_config(page_title="Visitas • Eva", layout="wide")
setup_logging()
logger = logging.getLogger("pages.visitas")

profile = require_gestor()
st.session_state["current_page"] = "Visitas"
render_sidebar_menu(profile)

DESCUMPRIMENTO = {"todos": "Todos", "com": "Com descumprimento", "sem": "Sem descumprimento"}

st.title("Visitas")

with st.container(border=True):
    c_p, c_g, c_d, c_s = st.columns([1, 1.2, 1.4, 2.4], vertical_alignment="bottom")
    with c_p:
        period = st.selectbox("Período", list(PERIODOS.keys()), format_func=lambda k: PERIODOS[k], index=1, key="vis_period")
    with c_g:
        guarnicao = st.selectbox("Guarnição", [TODAS] + GUARNICOES, key="vis_guarnicao")
    with c_d:
        desc = st.selectbox("Descumprimento", list(DESCUMPRIMENTO.keys()), format_func=lambda k: DESCUMPRIMENTO[k], key="vis_desc")
    with c_s:
        search = st.text_input("Buscar", placeholder="Assistida, processo, situação, observações...", key="vis_search")

rng = make_range(period)
filter_key = (period, guarnicao, desc, rng["start"])

# ----------------------------
# Paginação por cursor: mantém o que já foi carregado enquanto os filtros não mudam
# ----------------------------
if st.session_state.get("vis_filter_key") != filter_key:
    st.session_state["vis_filter_key"] = filter_key
    st.session_state["vis_rows"] = []
    st.session_state["vis_has_more"] = True
    st.session_state["vis_load"] = True


def load_page():
    loaded = st.session_state["vis_rows"]
    rows, has_more = fetch_visitas_page(
        rng["start"],
        rng["end_exclusive"],
        guarnicao=guarnicao,
        descumprimento=desc,
        after=loaded[-1] if loaded else None,
    )
    st.session_state["vis_rows"] = loaded + rows
    st.session_state["vis_has_more"] = has_more


if st.session_state.pop("vis_load", False):
    try:
        with st.spinner("Carregando visitas..."):
            load_page()
    except Exception as e:
        logger.exception("Falha ao carregar visitas")
        st.error(f"Erro ao carregar visitas: {e}")
        st.stop()

visitas = st.session_state["vis_rows"]
has_more = st.session_state["vis_has_more"]

try:
    assistidas_map = fetch_assistidas_by_ids(v.get("id_assistida") for v in visitas)
except Exception as e:
    logger.exception("Falha ao buscar assistidas das visitas")
    st.error(f"Erro ao buscar assistidas: {e}")
    st.stop()

filtered = filter_visitas(visitas, assistidas_map, search)

st.caption(
    f"{rng['label']} · **{len(filtered)}** registros (carregados)" + (" · há mais" if has_more else "")
)

if not filtered:
    st.info("Nenhuma visita para os filtros atuais.")
else:
    def assistida_txt(v):
        a = assistidas_map.get(safe_str(v.get("id_assistida"))) or {}
        nome = safe_str(a.get("nome_completo")) or safe_str(v.get("id_assistida")) or "—"
        proc = safe_str(a.get("numero_processo"))
        return f"{nome} ({proc})" if proc else nome

    df_view = pd.DataFrame([
        {
            "Data/Hora": format_ms(parse_millis(v.get("data_hora")), with_time=True),
            "Guarnição": safe_str(v.get("guarnicao")) or "—",
            "Assistida": assistida_txt(v),
            "Situação": safe_str(v.get("situacao_encontrada")) or "—",
            "Descumprimento": "Sim" if v.get("houve_descumprimento") else "Não",
            "Detalhes": safe_str(v.get("detalhes_descumprimento")),
            "Observações": safe_str(v.get("observacoes_gerais")),
            "Mapa": maps_url(v.get("latitude"), v.get("longitude")),
        }
        for v in filtered
    ])

    st.dataframe(
        df_view,
        use_container_width=True,
        hide_index=True,
        column_config={
            "Mapa": st.column_config.LinkColumn("Mapa", display_text="Abrir no Google Maps"),
        },
    )

if has_more:
    if st.button("Carregar mais", key="vis_more"):
        st.session_state["vis_load"] = True
        st.rerun()
