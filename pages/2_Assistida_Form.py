import logging
from datetime import datetime

import streamlit as st

from src.config import GUARNICOES, setup_logging, timezone
from src.auth import require_gestor
from src.repository import fetch_assistida, insert_assistida, update_assistida, set_assistida_foto
from src.storage import upload_foto_assistida, try_delete_by_url
from src.assistida_form import (
    BENEFICIOS_GOVERNO,
    CIDADES,
    ESTADOS_CIVIS,
    FAIXAS_ETARIAS_FILHOS,
    GRAU_RISCO,
    LOCAIS_FISCALIZACAO,
    QTD_FILHOS,
    RESPONSAVEL_SUSTENTO,
    SIM_NAO,
    TIPOS_VIOLENCIA,
    TURNOS_FISCALIZACAO,
    FormError,
    build_payload,
    form_from_record,
    tem_beneficio,
)
from ui.sidebar import render_sidebar_menu

st.set_page_config(page_title="Assistida • Eva", layout="wide")
setup_logging()
logger = logging.getLogger("pages.assistida_form")

profile = require_gestor()
st.session_state["current_page"] = "Assistidas"
render_sidebar_menu(profile)

PREFIX = "af_"

assistida_id = st.session_state.get("assistida_edit_id")
is_edit = bool(assistida_id)

# ----------------------------
# Carrega o registro (uma vez por assistida aberta)
# ----------------------------
record = None
if is_edit:
    try:
        record = fetch_assistida(assistida_id)
    except Exception as e:
        logger.exception("Falha ao carregar assistida %s", assistida_id)
        st.error(f"Erro ao carregar assistida: {e}")
        st.stop()
    if record is None:
        st.error("Assistida não encontrada.")
        st.stop()

loaded_for = st.session_state.get(PREFIX + "loaded_for")
# widgets somem do session_state ao trocar de página: recarrega nesse caso também
if loaded_for != (assistida_id or "new") or PREFIX + "nome_completo" not in st.session_state:
    for k, v in form_from_record(record).items():
        st.session_state[PREFIX + k] = v
    st.session_state[PREFIX + "loaded_for"] = assistida_id or "new"


def text(label: str, field: str, **kwargs):
    return st.text_input(label, key=PREFIX + field, **kwargs)


def select(label: str, field: str, options, blank: bool = True, **kwargs):
    opts = ([""] if blank else []) + list(options)
    current = st.session_state.get(PREFIX + field)
    # valores antigos fora da lista continuam visíveis
    if current and current not in opts:
        opts.append(current)
    return st.selectbox(label, opts, key=PREFIX + field, format_func=lambda x: x or "—", **kwargs)


def form_values() -> dict:
    n = len(PREFIX)
    return {k[n:]: v for k, v in st.session_state.items() if isinstance(k, str) and k.startswith(PREFIX)}


# ----------------------------
# Cabeçalho
# ----------------------------
h_l, h_r = st.columns([4, 1], vertical_alignment="bottom")
with h_l:
    st.title("Editar assistida" if is_edit else "Cadastrar assistida")
with h_r:
    if st.button("← Voltar", use_container_width=True):
        st.switch_page("pages/1_Assistidas.py")

# ----------------------------
# Foto
# ----------------------------
with st.container(border=True):
    f_img, f_up = st.columns([1, 4])
    foto_atual = (record or {}).get("foto_url")
    with f_img:
        if foto_atual:
            st.image(foto_atual, width=110)
        else:
            st.markdown("📷")
    with f_up:
        st.markdown("**Foto da assistida**")
        foto = st.file_uploader(
            "Selecione uma imagem (será gravada no Storage e em foto_url)",
            type=["jpg", "jpeg", "png", "webp"],
            key="af_upload",
        )

# ----------------------------
# Identificação / contato / endereço
# ----------------------------
with st.container(border=True):
    st.subheader("Identificação")
    c1, c2, c3, c4 = st.columns([3, 1, 1.5, 1.5])
    with c1:
        text("Nome completo *", "nome_completo")
    with c2:
        text("Idade", "idade")
    with c3:
        text("RG", "rg")
    with c4:
        text("CPF", "cpf")

    c1, c2 = st.columns(2)
    with c1:
        text("Telefone principal", "telefone_principal")
    with c2:
        text("Telefone alternativo", "telefone_alternativo")

with st.container(border=True):
    st.subheader("Endereço")
    c1, c2 = st.columns(2)
    with c1:
        select("Cidade", "cidade", CIDADES)
    with c2:
        select("Guarnição PMP", "guarnicao_pmp", GUARNICOES)

    c1, c2, c3 = st.columns([2, 3, 1])
    with c1:
        text("Bairro", "bairro")
    with c2:
        text("Logradouro", "logradouro")
    with c3:
        text("Número", "numero")

    c1, c2 = st.columns(2)
    with c1:
        text("Latitude", "latitude", placeholder="-9.7476")
    with c2:
        text("Longitude", "longitude", placeholder="-36.6660")

# ----------------------------
# Medida protetiva / fiscalização
# ----------------------------
with st.container(border=True):
    st.subheader("Medida protetiva e fiscalização")
    c1, c2 = st.columns(2)
    with c1:
        text("Número do processo", "numero_processo")
    with c2:
        st.date_input("Validade da medida", key=PREFIX + "data_validade_medida", format="DD/MM/YYYY")

    c1, c2 = st.columns(2)
    with c1:
        select("Local de fiscalização", "local_fiscalizacao", LOCAIS_FISCALIZACAO)
    with c2:
        select("Melhor turno para fiscalização", "melhor_turno_fiscalizacao", TURNOS_FISCALIZACAO)

# ----------------------------
# Família e renda
# ----------------------------
with st.container(border=True):
    st.subheader("Família e renda")
    c1, c2 = st.columns(2)
    with c1:
        select("Estado civil", "estado_civil", ESTADOS_CIVIS)

    c1, c2, c3 = st.columns(3)
    with c1:
        possui_filhos = select("Possui filhos?", "possui_filhos", SIM_NAO[1:])
    with c2:
        select("Quantidade de filhos", "quantidade_filhos", QTD_FILHOS, disabled=possui_filhos != "Sim")
    with c3:
        select("Faixa etária dos filhos", "faixa_etaria_filhos", FAIXAS_ETARIAS_FILHOS, disabled=possui_filhos != "Sim")

    c1, c2 = st.columns(2)
    with c1:
        com_agressor = select("Possui filhos com o agressor?", "possui_filhos_com_agressor", SIM_NAO[1:])
    with c2:
        select(
            "Quantidade de filhos com o agressor",
            "quantidade_filhos_com_agressor",
            QTD_FILHOS,
            disabled=com_agressor != "Sim",
        )

    c1, c2 = st.columns(2)
    with c1:
        text("Profissão", "profissao")
    with c2:
        text("Local de trabalho", "local_trabalho")

    c1, c2 = st.columns(2)
    with c1:
        select("Principal responsável pelo sustento", "principal_responsavel_sustento", RESPONSAVEL_SUSTENTO)
    with c2:
        beneficio = select("Benefício do governo", "beneficio_governo", BENEFICIOS_GOVERNO, blank=False)

    pode_nis = tem_beneficio(beneficio)
    c1, c2 = st.columns(2)
    with c1:
        possui_nis = select("Possui NIS?", "possui_nis", SIM_NAO[1:], disabled=not pode_nis)
    with c2:
        text("Número do NIS", "numero_nis", disabled=not (pode_nis and possui_nis == "Sim"))

# ----------------------------
# Violência e risco
# ----------------------------
with st.container(border=True):
    st.subheader("Violência e risco")
    violencias = st.session_state.get(PREFIX + "tipos_violencia_sofrida") or []
    st.multiselect(
        "Tipo(s) de violência sofrida",
        TIPOS_VIOLENCIA + [v for v in violencias if v not in TIPOS_VIOLENCIA],
        key=PREFIX + "tipos_violencia_sofrida",
    )
    c1, c2 = st.columns(2)
    with c1:
        text("Local da agressão", "local_agressao")
    with c2:
        select("Grau de risco", "grau_risco", GRAU_RISCO)

    if is_edit and record and record.get("data_avaliacao_risco"):
        st.caption("A data da avaliação de risco é mantida na edição.")

# ----------------------------
# Salvar
# ----------------------------
if st.button("💾 Salvar alterações" if is_edit else "💾 Salvar", type="primary"):
    try:
        payload = build_payload(form_values(), is_edit=is_edit, now=datetime.now(tz=timezone()))
    except FormError as e:
        st.error(str(e))
        st.stop()

    try:
        with st.spinner("Salvando..."):
            if is_edit:
                update_assistida(assistida_id, payload)
                target_id = assistida_id
            else:
                target_id = insert_assistida(payload)

            if foto is not None:
                if is_edit:
                    try_delete_by_url(foto_atual)
                url = upload_foto_assistida(target_id, foto.getvalue(), foto.type or "image/jpeg")
                set_assistida_foto(target_id, url)
    except Exception as e:
        logger.exception("Falha ao salvar assistida")
        st.error(f"Erro ao salvar: {e}")
        st.stop()

    st.session_state.pop(PREFIX + "loaded_for", None)
    st.session_state["assistida_edit_id"] = None
    st.toast("Assistida salva.")
    st.switch_page("pages/1_Assistidas.py")
