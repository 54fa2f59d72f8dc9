import logging

import streamlit as st
import pandas as pd

from src.config import GUARNICOES, setup_logging
from src.auth import require_gestor
from src.repository import (
    REPORT_AGENDAS_LIMIT,
    REPORT_VISITAS_LIMIT,
    fetch_agendas_range,
    fetch_visitas_between,
)
from src.helpers import add_days, day_key, days_between, start_of_day, today
from src.metrics import build_resumo_texto, report_metrics, total_periodo, totals_by_guarnicao
from ui.sidebar import render_sidebar_menu

st.set_page_config(page_title="Relatório por período • Eva", layout="wide")
setup_logging()
logger = logging.getLogger("pages.relatorio")

profile = require_gestor()
st.session_state["current_page"] = "Relatório por período"
render_sidebar_menu(profile)

st.title("Relatório por período")

if "rel_start" not in st.session_state:
    st.session_state["rel_start"] = add_days(today(), -6)
    st.session_state["rel_end"] = today()


def set_last(n_days: int):
    st.session_state["rel_start"] = add_days(today(), -(n_days - 1))
    st.session_state["rel_end"] = today()


with st.container(border=True):
    st.subheader("Filtro do período")
    c_s, c_e, c_7, c_30 = st.columns([1.3, 1.3, 1, 1], vertical_alignment="bottom")
    with c_s:
        start = st.date_input("Data inicial", key="rel_start", format="DD/MM/YYYY")
    with c_e:
        end = st.date_input("Data final", key="rel_end", format="DD/MM/YYYY")
    with c_7:
        st.button("Últimos 7 dias", on_click=set_last, args=(7,), use_container_width=True)
    with c_30:
        st.button("Últimos 30 dias", on_click=set_last, args=(30,), use_container_width=True)

if not start or not end or start > end:
    st.warning("Informe um período válido (data inicial não pode ser maior que a final).")
    st.stop()

start_key, end_key = day_key(start), day_key(end)
days = days_between(start_key, end_key)

try:
    with st.spinner("Carregando dados do relatório..."):
        agendas = fetch_agendas_range(start_key, end_key, limit=REPORT_AGENDAS_LIMIT)
        visitas = fetch_visitas_between(
            start_of_day(start), start_of_day(add_days(end, 1)), limit=REPORT_VISITAS_LIMIT
        )
except Exception as e:
    logger.exception("Falha ao carregar relatório %s a %s", start_key, end_key)
    st.error(f"Falha ao carregar dados do relatório: {e}")
    st.stop()

if len(agendas) >= REPORT_AGENDAS_LIMIT or len(visitas) >= REPORT_VISITAS_LIMIT:
    st.warning(
        "O período tem mais registros do que o limite de leitura "
        f"({REPORT_AGENDAS_LIMIT} agendas / {REPORT_VISITAS_LIMIT} visitas). "
        "Os últimos dias podem estar incompletos: reduza o intervalo."
    )

metrics = report_metrics(days, agendas, visitas)
totais = totals_by_guarnicao(days, metrics)
total = total_periodo(totais)

# ----------------------------
# KPIs
# ----------------------------
k = st.columns(6)
k[0].metric("Visitas (período)", total.visitas_total)
k[1].metric("Assistidas únicas (somatório)", total.assistidas_unicas)
k[2].metric("Descumprimentos", total.descumprimentos)
k[3].metric("Agenda planejada", total.agenda_planejada)
k[4].metric("Agenda realizada", total.agenda_realizada)
k[5].metric("Agenda não realizada", total.agenda_nao_realizada)

# ----------------------------
# Por guarnição
# ----------------------------
st.subheader("Resumo por guarnição (no período)")
cols = st.columns(len(GUARNICOES))
for col, g in zip(cols, GUARNICOES):
    m = totais[g]
    with col:
        with st.container(border=True):
            st.markdown(f"**{g}**")
            st.caption(f"Visitas: {m.visitas_total} · Agenda: {m.agenda_planejada}")
            st.write(f"Assistidas únicas: {m.assistidas_unicas}")
            st.write(f"Descumprimentos: {m.descumprimentos}")
            st.write(f"Realizada: {m.agenda_realizada} · Não realizada: {m.agenda_nao_realizada}")

# ----------------------------
# Dia x guarnição
# ----------------------------
st.subheader("Detalhamento por dia e guarnição")

df = pd.DataFrame([
    {
        "Dia": day,
        "Guarnição": g,
        "Visitas": m.visitas_total,
        "Assistidas únicas": m.assistidas_unicas,
        "Desc.": m.descumprimentos,
        "Planejada": m.agenda_planejada,
        "Realizada": m.agenda_realizada,
        "Não realizada": m.agenda_nao_realizada,
    }
    for day in days
    for g, m in metrics[day].items()
])
st.dataframe(df, use_container_width=True, hide_index=True)

# ----------------------------
# Resumo em texto
# ----------------------------
resumo = build_resumo_texto(start_key, end_key, days, metrics)

with st.expander("Resumo em texto"):
    st.code(resumo, language=None)

st.download_button(
    "Baixar resumo (.txt)",
    data=resumo.encode("utf-8"),
    file_name=f"relatorio_{start_key}_a_{end_key}.txt",
    mime="text/plain",
)
