import logging

import streamlit as st
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from src.config import PERIODOS, setup_logging
from src.auth import require_gestor
from src.repository import fetch_agendas_range, fetch_assistidas_ativas, fetch_visitas_since
from src.helpers import (
    GUARNICAO_COLORS,
    RISCO_COLORS,
    RISCO_LABELS,
    alerta_sem_visita_html,
    alerta_vencendo_html,
    apply_plot_theme,
    enumerate_day_keys,
    format_ms,
    make_range,
    now_ms,
    window_start_ms,
)
from src.metrics import (
    alertas_medida_vencendo,
    alertas_sem_visita,
    build_visit_index,
    dashboard_series,
    risco_counts,
    sum_series,
    taxa_por_guarnicao,
)
from ui.sidebar import render_sidebar_menu

st.set_page_config(page_title="Dashboard • Eva", layout="wide")
setup_logging()
logger = logging.getLogger("pages.dashboard")

profile = require_gestor()
st.session_state["current_page"] = "Dashboard"
render_sidebar_menu(profile)

ALERTAS_PAGE = 12
VISITAS_JANELA_DIAS = 120

st.title("Dashboard")

period = st.segmented_control(
    "Período",
    options=list(PERIODOS.keys()),
    format_func=lambda k: PERIODOS[k],
    default="7d",
    key="dash_period",
) or "7d"

rng = make_range(period)
day_keys = enumerate_day_keys(rng["start"], rng["end_exclusive"])
start_ms = int(rng["start"].timestamp() * 1000)
end_ms = int(rng["end_exclusive"].timestamp() * 1000)
now = now_ms()

try:
    with st.spinner("Carregando dados..."):
        agendas = fetch_agendas_range(day_keys[0], day_keys[-1])
        visitas = fetch_visitas_since(window_start_ms(VISITAS_JANELA_DIAS))
        assistidas = fetch_assistidas_ativas()
except Exception as e:
    logger.exception("Falha ao carregar o dashboard")
    st.error(f"Erro ao carregar dados: {e}")
    st.stop()

idx = build_visit_index(visitas, start_ms, end_ms)
series = dashboard_series(day_keys, agendas, idx)
totais = sum_series(series)

st.caption(f"{rng['label']} · {format_ms(start_ms)} a {format_ms(end_ms - 1)}")

# ----------------------------
# KPIs
# ----------------------------
c1, c2, c3, c4 = st.columns(4)
c1.metric("Planejadas no período", totais["planejadas"], help=f"Base: agenda planejada ({rng['label']})")
c2.metric(
    "Cumpridas (geral)",
    f"{totais['cumpridas']} • {totais['taxa_geral'] * 100:.1f}%",
    help="Visita no mesmo dia, por qualquer guarnição",
)
c3.metric(
    "Cumpridas (guarnição)",
    f"{totais['cumpridas_guarnicao']} • {totais['taxa_guarnicao'] * 100:.1f}%",
    help="Visita no mesmo dia, pela guarnição planejada",
)
c4.metric("Visitas registradas", totais["visitas"])
c4.caption(f"GPS: **{totais['gps']}** • Desc: **{totais['desc']}**")

st.divider()

# ----------------------------
# Evolução + risco
# ----------------------------
col_line, col_pie = st.columns([1.7, 1.0])

with col_line:
    st.subheader("Evolução por dia")
    st.caption("Planejadas x Cumpridas x Visitas (registradas)")
    df_series = pd.DataFrame(series)
    fig = go.Figure()
    for col, nome, cor in (
        ("planejadas", "Planejadas", "#90CAF9"),
        ("cumpridas", "Cumpridas (geral)", "#F48FB1"),
        ("cumpridas_guarnicao", "Cumpridas (guarnição)", "#CE93D8"),
        ("visitas", "Visitas", "#80CBC4"),
    ):
        fig.add_trace(go.Scatter(x=df_series["dia"], y=df_series[col], name=nome, mode="lines+markers", line=dict(color=cor)))
    apply_plot_theme(fig, height=340, legend=dict(orientation="h", y=-0.2))
    st.plotly_chart(fig, use_container_width=True)

with col_pie:
    st.subheader("Assistidas por nível de risco")
    riscos = risco_counts(assistidas)
    if not riscos:
        st.info("Nenhuma assistida ativa.")
    else:
        df_risco = pd.DataFrame(riscos)
        fig_pie = px.pie(
            df_risco,
            names="name",
            values="value",
            color="name",
            color_discrete_map={RISCO_LABELS[k]: v for k, v in RISCO_COLORS.items()},
            hole=0.45,
        )
        apply_plot_theme(fig_pie, height=340)
        st.plotly_chart(fig_pie, use_container_width=True)

# ----------------------------
# Cumprimento por guarnição
# ----------------------------
st.subheader("Cumprimento por guarnição")
taxas = taxa_por_guarnicao(agendas, idx)
df_taxas = pd.DataFrame(taxas)
fig_bar = px.bar(
    df_taxas,
    x="guarnicao",
    y="taxa",
    color="guarnicao",
    color_discrete_map=GUARNICAO_COLORS,
    text=df_taxas.apply(lambda r: f"{r['taxa']}% ({r['cumpridas']}/{r['planejadas']})", axis=1),
)
apply_plot_theme(fig_bar, height=300, x_title="", y_title="% cumprida pela guarnição")
fig_bar.update_layout(showlegend=False)
st.plotly_chart(fig_bar, use_container_width=True)

st.divider()

# ----------------------------
# Alertas
# ----------------------------
def ver_mais(key: str):
    st.session_state[key] = st.session_state.get(key, ALERTAS_PAGE) + ALERTAS_PAGE


sem_visita = alertas_sem_visita(assistidas, idx.last_visit, now)
vencendo = alertas_medida_vencendo(assistidas, now)

col_a, col_b = st.columns(2)

with col_a:
    with st.container(border=True):
        st.subheader(f"Alertas: Sem visita ({len(sem_visita)})")
        st.caption("Sem visita registrada há 45 dias ou mais (janela de 120 dias)")
        if not sem_visita:
            st.success("Nenhuma assistida sem visita há 45 dias.")
        else:
            shown = st.session_state.get("dash_sem_visita_n", ALERTAS_PAGE)
            for a in sem_visita[:shown]:
                st.markdown(alerta_sem_visita_html(a), unsafe_allow_html=True)
            if len(sem_visita) > shown:
                st.button("Ver mais", key="dash_sem_visita_more", on_click=ver_mais, args=("dash_sem_visita_n",))

with col_b:
    with st.container(border=True):
        st.subheader(f"Alertas: Medida protetiva vencendo ({len(vencendo)})")
        st.caption("Validade da medida nos próximos 7 dias")
        if not vencendo:
            st.success("Nenhuma medida vencendo nos próximos 7 dias.")
        else:
            shown = st.session_state.get("dash_vencendo_n", ALERTAS_PAGE)
            for a in vencendo[:shown]:
                st.markdown(alerta_vencendo_html(a), unsafe_allow_html=True)
            if len(vencendo) > shown:
                st.button("Ver mais", key="dash_vencendo_more", on_click=ver_mais, args=("dash_vencendo_n",))

st.caption(f"Atualizado em {format_ms(now, with_time=True)}")
