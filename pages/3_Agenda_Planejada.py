import logging

import psycopg2
import streamlit as st
import pandas as pd

from src.config import GUARNICOES, TODAS, TIPOS_VISITA, setup_logging
from src.auth import require_gestor
from src.repository import (
    PLANNER_ASSISTIDAS_LIMIT,
    delete_agenda,
    fetch_agendas_dia,
    fetch_assistidas,
    fetch_assistidas_by_ids,
    fetch_visitas_between,
    insert_agenda,
)
from src.helpers import add_days, day_key, pct, safe_str, start_of_day, today
from src.metrics import agenda_day_status, cumprida_guarnicao_label
from ui.sidebar import render_sidebar_menu

st.set_page_config(page_title="Agenda planejada • Eva", layout="wide")
setup_logging()
logger = logging.getLogger("pages.agenda")

profile = require_gestor()
st.session_state["current_page"] = "Agenda planejada"
render_sidebar_menu(profile)

st.title("Agenda planejada")

# ----------------------------
# Filtros
# ----------------------------
with st.container(border=True):
    c_dia, c_g, c_busca, c_pend = st.columns([1.2, 1.2, 2.5, 1.1], vertical_alignment="bottom")
    with c_dia:
        dia = st.date_input("Data", value=today(), format="DD/MM/YYYY", key="ag_dia")
    with c_g:
        guarnicao = st.selectbox("Guarnição", [TODAS] + GUARNICOES, key="ag_guarnicao")
    with c_busca:
        search = st.text_input("Buscar", placeholder="Nome, processo, guarnição, observação...", key="ag_search")
    with c_pend:
        only_pending = st.toggle("Só pendentes", key="ag_only_pending")

dia_str = day_key(dia)

try:
    with st.spinner("Carregando agenda e visitas..."):
        agendas = fetch_agendas_dia(dia_str, guarnicao)
        visitas_dia = fetch_visitas_between(start_of_day(dia), start_of_day(add_days(dia, 1)))
except Exception as e:
    logger.exception("Falha ao carregar agenda de %s", dia_str)
    st.error(f"Falha ao carregar agenda/visitas: {e}")
    st.stop()

try:
    assistidas_map = fetch_assistidas_by_ids(a.get("id_assistida") for a in agendas)
except psycopg2.Error:
    # nomes são só exibição: a agenda continua visível sem eles
    logger.warning("Falha ao buscar assistidas da agenda", exc_info=True)
    assistidas_map = {}

status = agenda_day_status(agendas, visitas_dia, assistidas_map, search=search, only_pending=only_pending)
summary = status["summary"]
rows = status["rows"]

k1, k2, k3 = st.columns(3)
k1.metric("Pendentes", summary["pendentes"])
k2.metric(
    "Cumpridas (geral)",
    f"{summary['done_any']}/{summary['total']} ({pct(summary['done_any'], summary['total'])}%)",
)
k3.metric(
    "Cumpridas (guarnição)",
    f"{summary['done_same']}/{summary['total']} ({pct(summary['done_same'], summary['total'])}%)",
)

# ----------------------------
# Planejar novo item
# ----------------------------
with st.expander("➕ Adicionar à agenda", expanded=not agendas):
    try:
        opcoes = fetch_assistidas(PLANNER_ASSISTIDAS_LIMIT)
    except Exception as e:
        logger.exception("Falha ao carregar assistidas")
        st.error(f"Erro ao carregar assistidas: {e}")
        opcoes = []

    by_id = {a["id"]: a for a in opcoes}
    if len(opcoes) >= PLANNER_ASSISTIDAS_LIMIT:
        st.caption(f"{len(opcoes)} assistidas carregadas (limitado)")

    def assistida_label(aid):
        a = by_id.get(aid) or {}
        proc = safe_str(a.get("numero_processo"))
        nome = safe_str(a.get("nome_completo")) or aid
        return f"{nome} · {proc}" if proc else nome

    with st.form("ag_add", clear_on_submit=True, border=False):
        p1, p2 = st.columns(2)
        with p1:
            plan_g = st.selectbox(
                "Guarnição",
                GUARNICOES,
                index=GUARNICOES.index(guarnicao) if guarnicao in GUARNICOES else 0,
            )
        with p2:
            plan_tipo = st.selectbox("Tipo da visita", TIPOS_VISITA)
        plan_aid = st.selectbox(
            "Assistida",
            list(by_id.keys()),
            index=None,
            format_func=assistida_label,
            placeholder="Digite para filtrar",
        )
        plan_obs = st.text_area("Observações", height=80)
        add = st.form_submit_button("Adicionar", type="primary")

    if add:
        if not plan_aid:
            st.error("Selecione uma assistida.")
        else:
            try:
                insert_agenda(dia_str, plan_g, plan_aid, plan_tipo, plan_obs)
            except Exception as e:
                logger.exception("Falha ao adicionar item na agenda")
                st.error(f"Falha ao adicionar item: {e}")
            else:
                st.toast("Item adicionado à agenda.")
                st.rerun()

# ----------------------------
# Itens do dia
# ----------------------------
st.subheader(f"Itens de {dia.strftime('%d/%m/%Y')}")

if not rows:
    st.info("Nenhum item na agenda para os filtros atuais.")
    st.stop()

df_view = pd.DataFrame([
    {
        "#": r["idx"],
        "Guarnição": r["guarnicao"],
        "Tipo": r["tipo_visita"],
        "Assistida": r["nome"],
        "Processo": r["processo"],
        "Risco": r["risco"],
        "Cumprida (geral)": "Sim" if r["done_any"] else "Não",
        "Cumprida (guarnição)": cumprida_guarnicao_label(r),
        "Observações": r["observacoes"],
    }
    for r in rows
])

event = st.dataframe(
    df_view,
    use_container_width=True,
    hide_index=True,
    on_select="rerun",
    selection_mode="single-row",
    key="ag_table",
)
selected = event.selection.rows if event else []

pending_delete = st.session_state.get("ag_delete_id")

if selected and not pending_delete:
    if st.button("🗑️ Excluir item selecionado"):
        st.session_state["ag_delete_id"] = rows[selected[0]]["id"]
        st.rerun()

if pending_delete:
    alvo = next((r for r in rows if r["id"] == pending_delete), None)
    st.warning(f"Excluir este item da agenda planejada? {alvo['nome'] if alvo else pending_delete}")
    d1, d2, _ = st.columns([1, 1, 4])
    with d1:
        if st.button("Confirmar exclusão", type="primary"):
            try:
                delete_agenda(pending_delete)
            except Exception as e:
                logger.exception("Falha ao excluir item %s", pending_delete)
                st.error(f"Falha ao excluir: {e}")
            else:
                st.session_state.pop("ag_delete_id", None)
                st.toast("Item excluído.")
                st.rerun()
    with d2:
        if st.button("Cancelar"):
            st.session_state.pop("ag_delete_id", None)
            st.rerun()
