from __future__ import annotations
import html
import math
import unicodedata
from typing import Optional, Dict, Any
from datetime import datetime, date, time, timedelta

import pandas as pd
import plotly.graph_objects as go

from src.config import GUARNICOES, timezone

# ============================================================
# Helpers: normalização, datas e tema dos gráficos
# ============================================================

# === Fonte única de cores (canônicas) ===
RISCO_COLORS = {
    "Alto": "#E53935",
    "Médio": "#FB8C00",
    "Baixo": "#43A047",
    "Sem": "#90A4AE",
}

GUARNICAO_COLORS = {
    "PMP Alfa": "#F48FB1",
    "PMP Bravo": "#90CAF9",
    "PMP Charlie": "#CE93D8",
    "PMP Delta": "#80CBC4",
}

RISCO_LABELS = {
    "Alto": "Alto",
    "Médio": "Médio",
    "Baixo": "Baixo",
    "Sem": "Sem classificação",
}

# Aliases -> canônico (resolve variações comuns do dado vindo do app de campo)
_GUARNICAO_ALIASES = {
    "alfa": "PMP Alfa",
    "alpha": "PMP Alfa",
    "bravo": "PMP Bravo",
    "charlie": "PMP Charlie",
    "charly": "PMP Charlie",
    "delta": "PMP Delta",
}

DAY_MS = 24 * 60 * 60 * 1000


def safe_str(v) -> str:
    if v is None:
        return ""
    if isinstance(v, float) and math.isnan(v):
        return ""
    return str(v).strip()


def norm_key(s) -> str:
    """Normaliza string para chave: trim + lower + sem acento."""
    s = safe_str(s).lower()
    s = unicodedata.normalize("NFKD", s)
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    return s


def canonical_guarnicao(value) -> str | None:
    """Converte qualquer variação ("pmp alfa", "PMPAlfa", "Alpha", "CHARLY"...) na guarnição canônica."""
    key = " ".join(norm_key(value).split())
    if not key:
        return None
    s = "".join(ch if ch.isalnum() else " " for ch in key)
    # ordem importa: alfa/alpha, bravo, charlie/charly, delta
    for alias, canonical in _GUARNICAO_ALIASES.items():
        if alias in s:
            return canonical
    for canonical in GUARNICOES:
        if norm_key(canonical) == key:
            return canonical
    return None


def normalize_risco(value) -> str:
    s = norm_key(value)
    if not s:
        return "Sem"
    if "alto" in s:
        return "Alto"
    if "medio" in s:
        return "Médio"
    if "baixo" in s:
        return "Baixo"
    return "Sem"


def risco_of(row: dict) -> str:
    return normalize_risco(row.get("grau_risco") or row.get("risco") or row.get("nivel_risco"))


def get_risco_color(risco: str | None, default: str = "#B0BEC5") -> str:
    return RISCO_COLORS.get(normalize_risco(risco), default)


def pct(n: int, d: int) -> int:
    if not d:
        return 0
    return int(round(n / d * 100))


# ------------------------------------------------------------
# Datas
# ------------------------------------------------------------

def parse_millis(value) -> int | None:
    """
    Converte o que vier no campo de data (epoch ms, string numérica, datetime,
    date, pandas.Timestamp, objeto estilo Timestamp do Firestore) para epoch ms.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return int(value)

    if isinstance(value, str):
        s = value.strip()
        if s.isdigit() and 10 <= len(s) <= 13:
            return int(s)
        return None

    if isinstance(value, pd.Timestamp):
        if pd.isna(value):
            return None
        value = value.to_pydatetime()

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone())
        return int(value.timestamp() * 1000)

    if isinstance(value, date):
        return int(datetime.combine(value, time(0, 0), tzinfo=timezone()).timestamp() * 1000)

    to_millis = getattr(value, "toMillis", None)
    if callable(to_millis):
        ms = to_millis()
        return int(ms) if isinstance(ms, (int, float)) and math.isfinite(ms) else None

    seconds = getattr(value, "seconds", None)
    if isinstance(seconds, (int, float)):
        nanos = getattr(value, "nanoseconds", 0) or 0
        return int(seconds * 1000 + nanos // 1_000_000)

    return None


def to_local(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone())


def now_ms() -> int:
    return int(datetime.now(tz=timezone()).timestamp() * 1000)


def today() -> date:
    return datetime.now(tz=timezone()).date()


def day_key(value) -> str:
    """YYYY-MM-DD no fuso local. Aceita date/datetime ou epoch ms."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone())
        return value.strftime("%Y-%m-%d")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    return to_local(int(value)).strftime("%Y-%m-%d")


def parse_day_key(key: str) -> date:
    return datetime.strptime(key, "%Y-%m-%d").date()


def format_day_label(key: str) -> str:
    _, m, d = key.split("-")
    return f"{d}/{m}"


def format_ms(ms: int | None, with_time: bool = False) -> str:
    if not ms:
        return "—"
    fmt = "%d/%m/%Y %H:%M" if with_time else "%d/%m/%Y"
    return to_local(ms).strftime(fmt)


def start_of_day(d: date) -> datetime:
    """Meia-noite local (aware) do dia."""
    return datetime.combine(d, time(0, 0), tzinfo=timezone())


def add_days(d: date, days: int) -> date:
    return d + timedelta(days=days)


def make_range(period: str, ref: date | None = None) -> dict:
    """
    Período pré-definido: 'hoje', '7d' (hoje + 6 anteriores) ou '30d' (hoje + 29 anteriores).
    `end_exclusive` é a meia-noite do dia seguinte.
    """
    ref = ref or today()
    end_exclusive = start_of_day(add_days(ref, 1))
    if period == "hoje":
        return {"start": start_of_day(ref), "end_exclusive": end_exclusive, "label": "Hoje"}
    if period == "7d":
        return {"start": start_of_day(add_days(ref, -6)), "end_exclusive": end_exclusive, "label": "Últimos 7 dias"}
    return {"start": start_of_day(add_days(ref, -29)), "end_exclusive": end_exclusive, "label": "Últimos 30 dias"}


def window_start_ms(days: int, ref: date | None = None) -> int:
    """Meia-noite local de `days` dias atrás, em epoch ms (estável durante o dia)."""
    ref = ref or today()
    return int(start_of_day(add_days(ref, -days)).timestamp() * 1000)


def enumerate_day_keys(start: datetime, end_exclusive: datetime) -> list[str]:
    out = []
    cur = start.date()
    last = end_exclusive.date()
    while cur < last:
        out.append(day_key(cur))
        cur = add_days(cur, 1)
    return out


def days_between(start_key: str, end_key: str) -> list[str]:
    """Lista inclusiva de dias entre duas chaves YYYY-MM-DD."""
    cur = parse_day_key(start_key)
    end = parse_day_key(end_key)
    out = []
    while cur <= end:
        out.append(day_key(cur))
        cur = add_days(cur, 1)
    return out


def maps_url(lat, lng) -> str | None:
    if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
        return None
    return f"https://www.google.com/maps?q={lat},{lng}"


# ------------------------------------------------------------
# Tema Plotly
# ------------------------------------------------------------

def apply_plot_theme(
    fig: go.Figure,
    *,
    height: Optional[int] = None,
    margin: Optional[Dict[str, int]] = None,
    legend: Optional[Dict[str, Any]] = None,
    x_title: Optional[str] = None,
    y_title: Optional[str] = None,
    tickfont_size: int = 12,
    titlefont_size: int = 13,
) -> go.Figure:
    """
    Aplica o tema padrão (escuro, rosa/azul) nos gráficos Plotly do painel.
    """
    if margin is None:
        margin = dict(l=30, r=30, t=30, b=30)

    base_legend = dict(
        bgcolor="rgba(16,26,44,0.75)",
        bordercolor="rgba(255,255,255,0.10)",
        borderwidth=1,
        font=dict(size=11),
        title_text=None,
    )
    if legend:
        base_legend.update(legend)

    fig.update_layout(
        template="plotly_dark",
        paper_bgcolor="#101A2C",
        plot_bgcolor="#101A2C",
        margin=margin,
        font=dict(
            family="Inter, system-ui, -apple-system, Segoe UI, Roboto, Arial",
            size=12,
        ),
        legend=base_legend,
    )

    if height is not None:
        fig.update_layout(height=height)

    fig.update_xaxes(
        title_text=x_title if x_title is not None else fig.layout.xaxis.title.text,
        title_font=dict(size=titlefont_size),
        tickfont=dict(size=tickfont_size),
        showgrid=True,
        gridcolor="rgba(255,255,255,0.06)",
        zeroline=False,
    )

    fig.update_yaxes(
        title_text=y_title if y_title is not None else fig.layout.yaxis.title.text,
        title_font=dict(size=titlefont_size),
        tickfont=dict(size=tickfont_size),
        showgrid=True,
        gridcolor="rgba(255,255,255,0.06)",
        zeroline=False,
    )

    return fig


# ------------------------------------------------------------
# Linhas dos alertas (markdown com HTML; texto livre sempre escapado)
# ------------------------------------------------------------

def alerta_sem_visita_html(a: dict) -> str:
    ultima = format_ms(a.get("ultima_visita_ms")) if a.get("ultima_visita_ms") else "Sem visitas"
    dias = "—" if a.get("ultima_visita_ms") is None else f"{a.get('dias_sem_visita')} dias"
    risco = RISCO_LABELS.get(a.get("risco"), RISCO_LABELS["Sem"])
    return (
        f"**{html.escape(safe_str(a.get('nome')))}**  \n"
        f"<small>Última visita: {ultima} · Risco: {html.escape(risco)} · {dias}</small>"
    )


def alerta_vencendo_html(a: dict) -> str:
    return (
        f"**{html.escape(safe_str(a.get('nome')))}**  \n"
        f"<small>Validade: {format_ms(a.get('validade_ms'))} · Tipo: {html.escape(safe_str(a.get('tipo')))} · "
        f"<b>{a.get('dias_para_vencer')} dias</b></small>"
    )
