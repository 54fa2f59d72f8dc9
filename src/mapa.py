import math

from src.config import TODAS
from src.helpers import (
    format_ms,
    get_risco_color,
    maps_url,
    norm_key,
    normalize_risco,
    parse_millis,
    safe_str,
)

# Centro padrão (Arapiraca/AL) quando não há pontos
DEFAULT_CENTER = (-9.7476, -36.6660)
DEFAULT_ZOOM = 12

COR_DESCUMPRIMENTO = [229, 57, 53]
COR_VISITA = [144, 202, 249]


def _coord(v):
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    return float(v) if math.isfinite(v) else None


def hex_to_rgb(color: str) -> list[int]:
    c = color.lstrip("#")
    return [int(c[i:i + 2], 16) for i in (0, 2, 4)]


def visit_points(visitas, guarnicao: str = TODAS) -> list[dict]:
    g_sel = norm_key(guarnicao) if guarnicao and guarnicao != TODAS else None

    out = []
    for v in visitas:
        lat, lng = _coord(v.get("latitude")), _coord(v.get("longitude"))
        if lat is None or lng is None:
            continue
        if g_sel and norm_key(v.get("guarnicao")) != g_sel:
            continue

        desc = v.get("houve_descumprimento") is True
        out.append({
            "id": v.get("id"),
            "lat": lat,
            "lon": lng,
            "weight": 1.0 if desc else 0.6,
            "cor": COR_DESCUMPRIMENTO if desc else COR_VISITA,
            "titulo": "Visita",
            "quando": format_ms(parse_millis(v.get("data_hora")), with_time=True),
            "guarnicao": safe_str(v.get("guarnicao")) or "—",
            "detalhe": "Descumprimento: Sim" if desc else "Descumprimento: Não",
            "maps_url": maps_url(lat, lng),
        })
    return out


def risco_weight(value) -> float:
    r = normalize_risco(value)
    if r == "Alto":
        return 1.0
    if r == "Médio":
        return 0.8
    return 0.6


def assistida_points(assistidas) -> list[dict]:
    out = []
    for a in assistidas:
        lat, lng = _coord(a.get("latitude")), _coord(a.get("longitude"))
        if lat is None or lng is None:
            continue
        risco = safe_str(a.get("grau_risco"))
        out.append({
            "id": a.get("id"),
            "lat": lat,
            "lon": lng,
            "weight": risco_weight(risco),
            "cor": hex_to_rgb(get_risco_color(risco)),
            "titulo": safe_str(a.get("nome_completo")) or "Assistida",
            "quando": "",
            "guarnicao": safe_str(a.get("guarnicao_pmp")) or "—",
            "detalhe": f"Risco: {risco or '—'}",
            "maps_url": maps_url(lat, lng),
        })
    return out


def view_state_for(points) -> dict:
    """Centro e zoom aproximados para enquadrar todos os pontos."""
    if not points:
        lat, lon = DEFAULT_CENTER
        return {"latitude": lat, "longitude": lon, "zoom": DEFAULT_ZOOM}

    lats = [p["lat"] for p in points]
    lons = [p["lon"] for p in points]
    span = max(max(lats) - min(lats), max(lons) - min(lons))

    if span < 1e-6:
        zoom = 14
    else:
        zoom = max(3, min(15, math.log2(360 / span) - 1))

    return {
        "latitude": (max(lats) + min(lats)) / 2,
        "longitude": (max(lons) + min(lons)) / 2,
        "zoom": round(zoom, 2),
    }
