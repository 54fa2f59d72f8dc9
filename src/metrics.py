"""
Agregações do painel: tudo roda em memória sobre as linhas já buscadas no banco.

Critérios usados em todas as telas:
- cumprida (geral): existe qualquer visita no mesmo dia para a assistida planejada;
- cumprida (guarnição): a visita do mesmo dia foi feita pela guarnição planejada.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, fields

from src.config import GUARNICOES
from src.helpers import (
    DAY_MS,
    RISCO_LABELS,
    canonical_guarnicao,
    day_key,
    format_day_label,
    norm_key,
    normalize_risco,
    parse_millis,
    risco_of,
    safe_str,
)

SEM_VISITA_DIAS = 45
MEDIDA_VENCENDO_DIAS = 7
SEM_VISITAS = 9999


def _has_gps(row: dict) -> bool:
    lat, lng = row.get("latitude"), row.get("longitude")
    return (
        isinstance(lat, (int, float)) and not isinstance(lat, bool)
        and isinstance(lng, (int, float)) and not isinstance(lng, bool)
        and math.isfinite(lat) and math.isfinite(lng)
    )


# ============================================================
# Dashboard
# ============================================================

@dataclass
class VisitIndex:
    # dia -> id_assistida -> guarnições que visitaram
    by_day: dict
    visitas_por_dia: dict
    gps_por_dia: dict
    desc_por_dia: dict
    # última visita (ms) por assistida, considerando todas as visitas recebidas
    last_visit: dict

    def guarnicoes(self, day: str, id_assistida: str):
        return self.by_day.get(day, {}).get(id_assistida)


def build_visit_index(visitas, start_ms: int, end_ms: int) -> VisitIndex:
    idx = VisitIndex({}, {}, {}, {}, {})

    for v in visitas:
        ms = parse_millis(v.get("data_hora"))
        if ms is None:
            continue

        aid = safe_str(v.get("id_assistida"))
        if aid:
            cur = idx.last_visit.get(aid)
            if cur is None or ms > cur:
                idx.last_visit[aid] = ms

        # métricas só do período selecionado
        if ms < start_ms or ms >= end_ms:
            continue

        day = day_key(ms)
        idx.visitas_por_dia[day] = idx.visitas_por_dia.get(day, 0) + 1
        if _has_gps(v):
            idx.gps_por_dia[day] = idx.gps_por_dia.get(day, 0) + 1
        if v.get("houve_descumprimento") is True:
            idx.desc_por_dia[day] = idx.desc_por_dia.get(day, 0) + 1

        if not aid:
            continue
        g = safe_str(v.get("guarnicao"))
        units = idx.by_day.setdefault(day, {}).setdefault(aid, set())
        if g:
            units.add(g)

    return idx


def dashboard_series(day_keys, agendas, idx: VisitIndex) -> list[dict]:
    planned_por_dia = {}
    for a in agendas:
        day = safe_str(a.get("data_dia"))
        if day:
            planned_por_dia.setdefault(day, []).append(a)

    series = []
    for day in day_keys:
        planned = planned_por_dia.get(day, [])
        cumpridas_any = 0
        cumpridas_same = 0

        for p in planned:
            aid = safe_str(p.get("id_assistida"))
            if not aid:
                continue
            units = idx.guarnicoes(day, aid)
            if units is None:
                continue
            cumpridas_any += 1
            g_plan = safe_str(p.get("guarnicao"))
            if g_plan and g_plan in units:
                cumpridas_same += 1

        series.append({
            "day_key": day,
            "dia": format_day_label(day),
            "planejadas": len(planned),
            "cumpridas": cumpridas_any,
            "cumpridas_guarnicao": cumpridas_same,
            "visitas": idx.visitas_por_dia.get(day, 0),
            "gps": idx.gps_por_dia.get(day, 0),
            "desc": idx.desc_por_dia.get(day, 0),
        })
    return series


def sum_series(series) -> dict:
    keys = ("planejadas", "cumpridas", "cumpridas_guarnicao", "visitas", "gps", "desc")
    totais = {k: 0 for k in keys}
    for row in series:
        for k in keys:
            totais[k] += row[k]
    planejadas = totais["planejadas"]
    totais["taxa_geral"] = totais["cumpridas"] / planejadas if planejadas else 0.0
    totais["taxa_guarnicao"] = totais["cumpridas_guarnicao"] / planejadas if planejadas else 0.0
    return totais


def taxa_por_guarnicao(agendas, idx: VisitIndex) -> list[dict]:
    out = []
    for g in GUARNICOES:
        planned = [a for a in agendas if safe_str(a.get("guarnicao")) == g]
        ok = 0
        for p in planned:
            aid = safe_str(p.get("id_assistida"))
            day = safe_str(p.get("data_dia"))
            if not aid or not day:
                continue
            units = idx.guarnicoes(day, aid)
            if units and g in units:
                ok += 1
        out.append({
            "guarnicao": g,
            "planejadas": len(planned),
            "cumpridas": ok,
            "taxa": round(ok / len(planned) * 100, 1) if planned else 0.0,
        })
    return out


def risco_counts(assistidas) -> list[dict]:
    counts = {"Alto": 0, "Médio": 0, "Baixo": 0, "Sem": 0}
    for a in assistidas:
        counts[risco_of(a)] += 1
    return [
        {"risco": k, "name": RISCO_LABELS[k], "value": v}
        for k, v in counts.items()
        if v > 0
    ]


def alertas_sem_visita(assistidas, last_visit: dict, now_ms: int, dias: int = SEM_VISITA_DIAS) -> list[dict]:
    """Assistidas sem visita há `dias` dias (ou nunca visitadas), mais antigas primeiro."""
    limite = dias * DAY_MS
    out = []
    for a in assistidas:
        key = safe_str(a.get("id")) or safe_str(a.get("id_assistida"))
        last = last_visit.get(key) if key else None
        if last and now_ms - last < limite:
            continue
        out.append({
            "id": a.get("id"),
            "nome": safe_str(a.get("nome_completo")) or safe_str(a.get("id")),
            "ultima_visita_ms": last or None,
            "dias_sem_visita": (now_ms - last) // DAY_MS if last else SEM_VISITAS,
            "risco": risco_of(a),
        })
    out.sort(key=lambda x: x["dias_sem_visita"], reverse=True)
    return out


def alertas_medida_vencendo(assistidas, now_ms: int, dias: int = MEDIDA_VENCENDO_DIAS) -> list[dict]:
    out = []
    for a in assistidas:
        validade = a.get("data_validade_medida")
        if validade is None:
            validade = a.get("validade_medida")
        ms = parse_millis(validade)
        if not ms:
            continue
        dias_para_vencer = math.ceil((ms - now_ms) / DAY_MS)
        if 0 <= dias_para_vencer <= dias:
            out.append({
                "id": a.get("id"),
                "nome": safe_str(a.get("nome_completo")) or safe_str(a.get("id")),
                "validade_ms": ms,
                "dias_para_vencer": dias_para_vencer,
                "tipo": safe_str(a.get("tipo_medida_principal")) or safe_str(a.get("tipo_medida")) or "—",
            })
    out.sort(key=lambda x: x["dias_para_vencer"])
    return out


# ============================================================
# Agenda planejada do dia
# ============================================================

def visitas_do_dia_index(visitas_dia):
    any_visit = set()
    by_guarnicao = {}
    for v in visitas_dia:
        aid = safe_str(v.get("id_assistida"))
        if not aid:
            continue
        any_visit.add(aid)
        g = safe_str(v.get("guarnicao"))
        if g:
            by_guarnicao.setdefault(g, set()).add(aid)
    return any_visit, by_guarnicao


def agenda_day_status(agendas, visitas_dia, assistidas_map: dict, search: str = "", only_pending: bool = False) -> dict:
    """Linhas da agenda do dia com os flags de cumprimento, já filtradas pela busca."""
    any_visit, by_guarnicao = visitas_do_dia_index(visitas_dia)
    s = norm_key(search)

    rows = []
    done_any_total = 0
    done_same_total = 0

    for i, a in enumerate(agendas, start=1):
        aid = safe_str(a.get("id_assistida"))
        g = safe_str(a.get("guarnicao"))
        done_any = bool(aid) and aid in any_visit
        done_same = bool(aid) and bool(g) and aid in by_guarnicao.get(g, set())
        done_any_total += done_any
        done_same_total += done_same

        asst = assistidas_map.get(aid) or {}
        nome = safe_str(asst.get("nome_completo"))
        processo = safe_str(asst.get("numero_processo"))
        risco = safe_str(asst.get("grau_risco"))
        tipo_visita = safe_str(a.get("tipo_visita")) or "—"

        if s:
            blob = " | ".join(
                norm_key(x) for x in (a.get("id"), aid, g, nome, processo, risco, a.get("observacoes"), tipo_visita)
            )
            if s not in blob:
                continue

        if only_pending and done_any:
            continue

        rows.append({
            "idx": i,
            "id": a.get("id"),
            "id_assistida": aid,
            "guarnicao": g or "—",
            "nome": nome or "—",
            "processo": processo or "—",
            "risco": risco or "—",
            "tipo_visita": tipo_visita,
            "observacoes": safe_str(a.get("observacoes")),
            "done_any": done_any,
            "done_same": done_same,
        })

    total = len(agendas)
    summary = {
        "total": total,
        "done_any": done_any_total,
        "done_same": done_same_total,
        "pendentes": total - done_any_total,
    }
    return {"rows": rows, "summary": summary}


def cumprida_guarnicao_label(row: dict) -> str:
    if row["done_same"]:
        return "Sim"
    if row["done_any"]:
        return "Outra guarnição"
    return "Não"


# ============================================================
# Relatório por período (dia x guarnição)
# ============================================================

@dataclass
class Metric:
    visitas_total: int = 0
    assistidas_unicas: int = 0
    descumprimentos: int = 0
    agenda_planejada: int = 0
    agenda_realizada: int = 0
    agenda_nao_realizada: int = 0

    def __add__(self, other: "Metric") -> "Metric":
        return Metric(**{f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)})

    @property
    def vazio(self) -> bool:
        return self.visitas_total == 0 and self.agenda_planejada == 0 and self.descumprimentos == 0


def guarnicao_of(row: dict) -> str | None:
    return (
        canonical_guarnicao(row.get("guarnicao"))
        or canonical_guarnicao(row.get("guarnicao_key"))
        or canonical_guarnicao(row.get("equipe"))
    )


def agenda_day(row: dict) -> str | None:
    return safe_str(row.get("data_dia")) or None


def visita_day(row: dict) -> str | None:
    ms = parse_millis(row.get("data_hora"))
    return day_key(ms) if ms else None


def group_by_day_guarnicao(rows, day_fn) -> dict:
    """dia -> guarnição canônica -> linhas. Linhas sem dia ou sem guarnição reconhecível ficam de fora."""
    out = {}
    for row in rows:
        day = day_fn(row)
        if not day:
            continue
        g = guarnicao_of(row)
        if not g:
            continue
        out.setdefault(day, {}).setdefault(g, []).append(row)
    return out


def report_metrics(days, agendas, visitas) -> dict:
    agendas_by = group_by_day_guarnicao(agendas, agenda_day)
    visitas_by = group_by_day_guarnicao(visitas, visita_day)

    out = {}
    for day in days:
        inner = {}
        for g in GUARNICOES:
            vlist = visitas_by.get(day, {}).get(g, [])
            alist = agendas_by.get(day, {}).get(g, [])

            visitadas = set()
            desc = 0
            for v in vlist:
                aid = safe_str(v.get("id_assistida"))
                if aid:
                    visitadas.add(aid)
                if v.get("houve_descumprimento") is True:
                    desc += 1

            realizada = sum(1 for a in alist if safe_str(a.get("id_assistida")) in visitadas)
            planejada = len(alist)

            inner[g] = Metric(
                visitas_total=len(vlist),
                assistidas_unicas=len(visitadas),
                descumprimentos=desc,
                agenda_planejada=planejada,
                agenda_realizada=realizada,
                agenda_nao_realizada=max(0, planejada - realizada),
            )
        out[day] = inner
    return out


def totals_by_guarnicao(days, metrics: dict) -> dict:
    out = {g: Metric() for g in GUARNICOES}
    for day in days:
        inner = metrics.get(day, {})
        for g in GUARNICOES:
            out[g] = out[g] + inner.get(g, Metric())
    return out


def total_periodo(totals: dict) -> Metric:
    acc = Metric()
    for g in GUARNICOES:
        acc = acc + totals.get(g, Metric())
    return acc


def build_resumo_texto(start_key: str, end_key: str, days, metrics: dict) -> str:
    total = total_periodo(totals_by_guarnicao(days, metrics))

    lines = [
        "RELATÓRIO (PERÍODO) - PATRULHA MARIA DA PENHA",
        f"Período: {start_key} a {end_key}",
        "",
        "RESUMO GERAL DO PERÍODO:",
        f"- Visitas: {total.visitas_total}",
        f"- Assistidas únicas (somatório por dia/guarnição): {total.assistidas_unicas}",
        f"- Descumprimentos: {total.descumprimentos}",
        f"- Agenda planejada: {total.agenda_planejada}",
        f"- Agenda realizada: {total.agenda_realizada}",
        f"- Agenda não realizada: {total.agenda_nao_realizada}",
        "",
    ]

    for day in days:
        lines.append(f"DIA {day}")
        inner = metrics.get(day, {})
        for g in GUARNICOES:
            m = inner.get(g, Metric())
            if m.vazio:
                lines.append(f"• {g}: SEM REGISTROS (visitas/agenda)")
                continue
            lines.append(f"• {g}:")
            lines.append(
                f"  - Visitas: {m.visitas_total} | Assistidas únicas: {m.assistidas_unicas} | Desc.: {m.descumprimentos}"
            )
            lines.append(
                f"  - Agenda: planejada {m.agenda_planejada} | realizada {m.agenda_realizada} | não realizada {m.agenda_nao_realizada}"
            )
        lines.append("")

    return "\n".join(lines)


# ============================================================
# Visitas (busca local no que já foi carregado)
# ============================================================

def filter_visitas(visitas, assistidas_map: dict, search: str):
    s = norm_key(search)
    if not s:
        return list(visitas)

    out = []
    for v in visitas:
        aid = safe_str(v.get("id_assistida"))
        a = assistidas_map.get(aid) or {}
        blob = " | ".join(norm_key(x) for x in (
            v.get("id"),
            aid,
            a.get("nome_completo"),
            a.get("numero_processo"),
            v.get("guarnicao"),
            v.get("situacao_encontrada"),
            v.get("observacoes_gerais"),
            v.get("detalhes_descumprimento"),
            v.get("id_autor"),
        ))
        if s in blob:
            out.append(v)
    return out


def normalize_risco_label(value) -> str:
    return RISCO_LABELS[normalize_risco(value)]


# ============================================================
# Assistidas (lista)
# ============================================================

ASSISTIDAS_SEARCH_FIELDS = (
    "nome_completo", "numero_processo", "id", "cidade", "bairro",
    "cpf", "telefone_principal", "telefone_alternativo", "grau_risco", "guarnicao_pmp",
)

ASSISTIDAS_SORT_KEYS = {
    "nome_completo": "Nome",
    "numero_processo": "Processo",
    "cidade": "Cidade",
    "bairro": "Bairro",
    "grau_risco": "Risco",
    "data_validade_medida": "Validade da medida",
}


def filter_assistidas(assistidas, search: str):
    s = norm_key(search)
    if not s:
        return list(assistidas)
    return [
        a for a in assistidas
        if any(s in norm_key(a.get(f)) for f in ASSISTIDAS_SEARCH_FIELDS)
    ]


def _sort_value(row: dict, key: str):
    if key == "data_validade_medida":
        return (0, parse_millis(row.get(key)) or 0, "")
    v = row.get(key)
    if isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v):
        return (0, v, "")
    s = safe_str(v)
    try:
        n = float(s)
    except ValueError:
        n = None
    if n is not None and math.isfinite(n):
        return (0, n, "")
    return (1, 0, norm_key(s))


def sort_assistidas(assistidas, key: str = "nome_completo", desc: bool = False):
    return sorted(assistidas, key=lambda a: _sort_value(a, key), reverse=desc)
