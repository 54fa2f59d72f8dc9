import logging

import streamlit as st
import pandas as pd
import pydeck as pdk

from src.config import GUARNICOES, PERIODOS, TODAS, setup_logging
from src.auth import require_gestor
from src.repository import fetch_assistidas_ativas, fetch_visitas_between
from src.helpers import make_range
from src.mapa import assistida_points, view_state_for, visit_points
from ui.sidebar import render_sidebar_menu

st.set_page_config(page_title="Mapa • Eva", layout="wide")
setup_logging()
logger = logging.getLogger("pages.mapa")

profile = require_gestor()
st.session_state["current_page"] = "Mapa"
render_sidebar_menu(profile)

MODOS = {"visitas": "Visitas", "assistidas": "Assistidas"}

st.title("Mapa")

with st.container(border=True):
    c_m, c_p, c_g, c_l = st.columns([1.2, 1, 1.2, 2], vertical_alignment="bottom")
    with c_m:
        modo = st.segmented_control("Mostrar", list(MODOS.keys()), format_func=lambda k: MODOS[k], default="visitas", key="map_modo") or "visitas"
    with c_p:
        period = st.selectbox(
            "Período",
            list(PERIODOS.keys()),
            format_func=lambda k: PERIODOS[k],
            index=1,
            key="map_period",
            disabled=modo != "visitas",
        )
    with c_g:
        guarnicao = st.selectbox("Guarnição", [TODAS] + GUARNICOES, key="map_guarnicao", disabled=modo != "visitas")
    with c_l:
        l1, l2 = st.columns(2)
        show_markers = l1.toggle("Marcadores", value=True, key="map_markers")
        show_heat = l2.toggle("Heatmap", value=False, key="map_heat")

try:
    with st.spinner("Carregando pontos..."):
        if modo == "visitas":
            rng = make_range(period)
            points = visit_points(fetch_visitas_between(rng["start"], rng["end_exclusive"]), guarnicao)
        else:
            points = assistida_points(fetch_assistidas_ativas())
except Exception as e:
    logger.exception("Falha ao carregar pontos do mapa")
    st.error(f"Erro ao carregar dados: {e}")
    st.stop()

st.caption(f"**{len(points)}** pontos com coordenadas")

if not points:
    st.info("Nenhum ponto com coordenadas para os filtros atuais. Verifique se há latitude/longitude nos registros.")
    st.stop()

df = pd.DataFrame(points)

layers = []
if show_heat:
    layers.append(pdk.Layer(
        "HeatmapLayer",
        data=df,
        get_position=["lon", "lat"],
        get_weight="weight",
        radius_pixels=40,
        opacity=0.7,
    ))
if show_markers:
    layers.append(pdk.Layer(
        "ScatterplotLayer",
        data=df,
        get_position=["lon", "lat"],
        get_fill_color="cor",
        get_radius=60,
        radius_min_pixels=4,
        pickable=True,
        opacity=0.85,
        stroked=True,
        line_width_min_pixels=1,
    ))

vs = view_state_for(points)

st.pydeck_chart(pdk.Deck(
    layers=layers,
    initial_view_state=pdk.ViewState(latitude=vs["latitude"], longitude=vs["longitude"], zoom=vs["zoom"], pitch=0),
    tooltip={"text": "{titulo}\n{quando}\n{guarnicao}\n{detalhe}"},
    map_style=None,
), use_container_width=True)

st.caption(
    "Heatmap mostra densidade; o peso aumenta em descumprimentos (visitas) ou risco alto (assistidas)."
)

with st.expander("Pontos (links para o Google Maps)"):
    st.dataframe(
        df[["titulo", "quando", "guarnicao", "detalhe", "maps_url"]],
        use_container_width=True,
        hide_index=True,
        column_config={
            "titulo": "Registro",
            "quando": "Data/Hora",
            "guarnicao": "Guarnição",
            "detalhe": "Detalhe",
            "maps_url": st.column_config.LinkColumn("Mapa", display_text="Abrir"),
        },
    )
