"""
Detección de intenciones del asistente y consultas de monitoreos.

Las reglas son expresiones regulares sobre el mensaje en minúsculas; el
orden de evaluación lo define `classify_message`.
"""

import re
from typing import Dict, Iterable, List, Optional

from monitoreo.shared.constants import TEMPLATE_STATUS
from monitoreo.timeline.availability import resolve_status
from monitoreo.timeline.calendar_window import in_window
from monitoreo.timeline.dates import parse_datetime, format_short_date, now_in_tz
from monitoreo.timeline.models import TimelineStatus

CREATE_MONITORING_REGEX = re.compile(
    r"(crear|registrar|agregar|nuevo)\s+(monitoreo|monitoring)\s*[:\-]?\s*(.+)?", re.IGNORECASE
)
MONITORING_INTENT_REGEX = re.compile(
    r"(crear|registrar|agregar|nuevo).*monitoreo|monitoreo.*(crear|registrar|agregar|nuevo)", re.IGNORECASE
)
MONITORING_QUERY_REGEX = re.compile(r"\b(monitoreo|monitoreos|seguimiento|plantilla|plantillas)\b", re.IGNORECASE)
MONITORING_STATUS_REGEX = re.compile(
    r"\b(cual|cuales|cuantos|lista|listar|mostrar|muestr|activos?|vigentes?|disponibles?|hoy|semana"
    r"|vencid|programad|por vencer)\b",
    re.IGNORECASE
)
DOCS_QUERY_REGEX = re.compile(
    r"\b(documento|documentos|politica|politicas|norma|lineamiento|manual|directiva|archivo|pdf)\b", re.IGNORECASE
)
SYSTEM_CONTEXT_QUERY_REGEX = re.compile(
    r"\b(monitoreo|monitoreos|seguimiento|plantilla|plantillas|reporte|reportes|actividad|calendario|hoy"
    r"|semana|vencid|por vencer|activo|vigente|docente|especialista|usuario|equipo|documento|documentos"
    r"|politica|manual|directiva)\b",
    re.IGNORECASE
)
GREETING_REGEX = re.compile(
    r"\b(hola|buenos dias|buenas tardes|buenas noches|que tal|saludos|gracias)\b", re.IGNORECASE
)

GREETING_MAX_WORDS = 6
SUMMARY_MAX_ITEMS = 5
EMPTY_RESULT = "No se encontraron resultados."
UNTITLED = "Monitoreo sin titulo"

INTENT_TITLES = {
    "today": "Monitoreos de hoy",
    "week": "Monitoreos de la semana",
    "overdue": "Monitoreos vencidos",
    "upcoming": "Monitoreos por vencer",
    "active": "Monitoreos activos",
}

STATUS_LABELS = {
    TimelineStatus.ACTIVE.value: "Activo",
    TimelineStatus.SCHEDULED.value: "Programado",
    TimelineStatus.CLOSED.value: "Vencido",
}

# Tipos de mensaje que distingue el asistente
CREATE = "create"
CREATE_MALFORMED = "create_malformed"
DATA_QUERY = "data_query"
GREETING = "greeting"
CHAT = "chat"


def create_title(message: str) -> Optional[str]:
    """Título del comando "Crear monitoreo: <título>", '' si falta, None si no es el comando."""
    match = CREATE_MONITORING_REGEX.search(message or "")
    if not match:
        return None
    return (match.group(3) or "").strip()


def is_monitoring_data_query(message: str) -> bool:
    text = (message or "").lower()
    return bool(MONITORING_QUERY_REGEX.search(text) and MONITORING_STATUS_REGEX.search(text))


def is_greeting(message: str) -> bool:
    text = (message or "").strip().lower()
    if not text:
        return False
    if MONITORING_QUERY_REGEX.search(text) or DOCS_QUERY_REGEX.search(text):
        return False
    return bool(GREETING_REGEX.search(text)) and len(text.split()) <= GREETING_MAX_WORDS


def needs_system_context(message: str) -> bool:
    return bool(SYSTEM_CONTEXT_QUERY_REGEX.search((message or "").lower()))


def classify_message(message: str) -> str:
    if create_title(message) is not None:
        return CREATE
    if MONITORING_INTENT_REGEX.search(message or ""):
        return CREATE_MALFORMED
    if is_monitoring_data_query(message):
        return DATA_QUERY
    if is_greeting(message):
        return GREETING
    return CHAT


def detect_data_intent(query: str) -> str:
    text = (query or "").lower()
    if "hoy" in text:
        return "today"
    if "semana" in text:
        return "week"
    if "vencid" in text:
        return "overdue"
    if "por vencer" in text or "proximo" in text:
        return "upcoming"
    return "active"


def _normalize_template(template: Dict, now) -> Dict:
    availability = template.get("availability") or {}
    return {
        "id": str(template.get("_id", template.get("id"))),
        "title": template.get("title") or UNTITLED,
        "status": template.get("status") or TEMPLATE_STATUS["PUBLISHED"],
        "timeline_status": resolve_status(availability, now).value,
        "availability": availability,
        "start_at": availability.get("startAt"),
        "end_at": availability.get("endAt"),
        "created_by": template.get("created_by"),
    }


def _sorted_by(items: List[Dict], field: str, fallback: str = None) -> List[Dict]:
    def key(item):
        value = parse_datetime(item.get(field) or (item.get(fallback) if fallback else None))
        # Sin fecha al final
        return (value is None, value.timestamp() if value else 0)
    return sorted(items, key=key)


def query_templates(intent: str, templates: Iterable[Dict], now=None) -> List[Dict]:
    """
    Plantillas publicadas que responden a la consulta.

    today/week: se cruzan con hoy o con los próximos 7 días; overdue: cerradas
    o con fin pasado; upcoming: activas con fin futuro; active: activas.
    """
    now = parse_datetime(now) if now is not None else now_in_tz()
    items = [
        _normalize_template(template, now)
        for template in templates
        if (template.get("status") or TEMPLATE_STATUS["PUBLISHED"]) == TEMPLATE_STATUS["PUBLISHED"]
    ]

    def matches(item):
        end = parse_datetime(item["end_at"])
        if intent == "today":
            return in_window(item, now, 1)
        if intent == "week":
            return in_window(item, now, 7)
        if intent == "overdue":
            return item["timeline_status"] == TimelineStatus.CLOSED.value or (end is not None and end < now)
        if intent == "upcoming":
            return item["timeline_status"] == TimelineStatus.ACTIVE.value and end is not None and end >= now
        return item["timeline_status"] == TimelineStatus.ACTIVE.value

    filtered = [item for item in items if matches(item)]
    if intent in ("overdue", "upcoming"):
        return _sorted_by(filtered, "end_at")
    if intent in ("today", "week"):
        return _sorted_by(filtered, "start_at", "end_at")
    return filtered


def format_range(item: Dict) -> Optional[str]:
    start = format_short_date(item.get("start_at"))
    end = format_short_date(item.get("end_at"))
    if start and end:
        return f"{start} a {end}"
    if start:
        return f"desde {start}"
    if end:
        return f"hasta {end}"
    return None


def _item_line(item: Dict) -> str:
    status = STATUS_LABELS.get(item.get("timeline_status"), "Activo")
    range_label = format_range(item)
    if range_label:
        return f"- {item.get('title')} ({status}, {range_label})"
    return f"- {item.get('title')} ({status})"


def build_summary(intent: str, items: List[Dict]) -> str:
    """Resumen en texto usado como contexto del sistema."""
    if not items:
        return EMPTY_RESULT
    lines = [INTENT_TITLES.get(intent, "Monitoreos")]
    lines.extend(_item_line(item) for item in items[:SUMMARY_MAX_ITEMS])
    if len(items) > SUMMARY_MAX_ITEMS:
        lines.append(f"... y {len(items) - SUMMARY_MAX_ITEMS} mas.")
    return "\n".join(lines)


def build_reply(intent: str, items: List[Dict]) -> str:
    """Respuesta directa del chat: siempre encabezada por el título de la consulta."""
    title = INTENT_TITLES.get(intent, "Monitoreos")
    if not items:
        return f"{title}\n- {EMPTY_RESULT}"
    lines = [title]
    lines.extend(_item_line(item) for item in items[:SUMMARY_MAX_ITEMS])
    if len(items) > SUMMARY_MAX_ITEMS:
        lines.append(f"- ... y {len(items) - SUMMARY_MAX_ITEMS} mas.")
    return "\n".join(lines)
