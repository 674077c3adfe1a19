"""
Filas del reporte de fichas de monitoreo.

Cada ficha se cruza con su plantilla para obtener un estado de fila:

    draft        la plantilla no está publicada
    expired      la plantilla ya cerró (por estado o por fecha)
    completed    la ficha fue completada
    in_progress  la ficha sigue en progreso
    active       sin plantilla o con estado de ficha desconocido

Las funciones de este módulo son puras; ReportService solo se encarga de
consultar fichas y plantillas antes de aplicarlas.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional

from monitoreo.shared.constants import COLLECTIONS, TEMPLATE_STATUS, INSTANCE_STATUS
from monitoreo.shared.exceptions import ValidationException
from monitoreo.shared.standardization import BaseService
from monitoreo.shared.utils import safe_file_token, serialize_document, strip_accents
from monitoreo.timeline.availability import resolve_status
from monitoreo.timeline.dates import parse_datetime, format_short_date, to_local_date, utc_now
from monitoreo.timeline.models import TimelineStatus, normalize_availability_status, AvailabilityStatus

ROW_STATES = ["active", "in_progress", "completed", "expired", "draft"]
ROW_STATE_LABELS = {
    "active": "Activo",
    "in_progress": "En progreso",
    "completed": "Completado",
    "expired": "Vencido",
    "draft": "Borrador",
}
GROUP_STATE_PRECEDENCE = ["in_progress", "active", "completed", "expired", "draft"]
SORT_OPTIONS = ["recent", "name", "due"]

NO_RANGE_LABEL = "Sin rango definido"
MISSING_DATE_LABEL = "No registrado"
NO_TEMPLATE_TITLE = "Monitoreo sin plantilla"
NO_DOCENTE_LABEL = "Sin docente"

# Orden de "due" para filas sin fecha de fin
_FAR_FUTURE = float("inf")


def report_row_state(template: Optional[Dict], instance: Dict, now=None) -> str:
    if not template:
        return "active"
    if template.get("status") != TEMPLATE_STATUS["PUBLISHED"]:
        return "draft"
    if resolve_status(template.get("availability"), now) == TimelineStatus.CLOSED:
        return "expired"
    if instance.get("status") == INSTANCE_STATUS["COMPLETED"]:
        return "completed"
    if instance.get("status") == INSTANCE_STATUS["IN_PROGRESS"]:
        return "in_progress"
    return "active"


def report_status_label(template: Optional[Dict], now=None) -> str:
    """Etiqueta de estado que se imprime en el reporte."""
    availability = (template or {}).get("availability") or {}
    status = normalize_availability_status(availability.get("status"))
    if status == AvailabilityStatus.HIDDEN:
        return "Oculto"
    if status == AvailabilityStatus.CLOSED:
        return "Cerrado"
    if resolve_status((template or {}).get("availability"), now) == TimelineStatus.CLOSED:
        return "Vencido"
    return "Activo"


def format_range(template: Optional[Dict]) -> str:
    availability = (template or {}).get("availability") or {}
    start_label = format_short_date(availability.get("startAt"))
    end_label = format_short_date(availability.get("endAt"))
    if not start_label and not end_label:
        return NO_RANGE_LABEL
    start_label = start_label or MISSING_DATE_LABEL
    end_label = end_label or MISSING_DATE_LABEL
    if start_label == end_label:
        return start_label
    return f"{start_label} - {end_label}"


def _instance_docente(instance: Dict) -> str:
    header = ((instance or {}).get("data") or {}).get("header") or {}
    return str(header.get("docente") or "").strip()


def _instance_timestamp(instance: Dict) -> Optional[datetime]:
    return parse_datetime(instance.get("updated_at")) or parse_datetime(instance.get("created_at"))


def format_file_name(template: Optional[Dict], instance: Dict) -> str:
    """Monitoreo_<titulo>_<docente>_<YYYY-MM-DD>, sin acentos ni símbolos."""
    title = (template or {}).get("title") or "Monitoreo"
    docente = _instance_docente(instance) or "Docente"
    timestamp = _instance_timestamp(instance)
    day = to_local_date(timestamp or utc_now())
    return f"Monitoreo_{safe_file_token(title)}_{safe_file_token(docente)}_{day.isoformat()}"


def build_report_rows(instances: Iterable[Dict], templates: Iterable[Dict], now=None) -> List[Dict]:
    templates_by_id = {str(template.get("_id", template.get("id"))): template for template in templates}
    rows = []
    for instance in instances:
        template = templates_by_id.get(str(instance.get("template_id")))
        timestamp = _instance_timestamp(instance)
        due_at = parse_datetime(((template or {}).get("availability") or {}).get("endAt"))
        state = report_row_state(template, instance, now)
        rows.append({
            "id": str(instance.get("_id", instance.get("id"))),
            "template_id": instance.get("template_id"),
            "template_title": (template or {}).get("title") or NO_TEMPLATE_TITLE,
            "docente": _instance_docente(instance) or NO_DOCENTE_LABEL,
            "state": state,
            "state_label": ROW_STATE_LABELS[state],
            "status_label": report_status_label(template, now) if template else None,
            "range_label": format_range(template) if template else NO_RANGE_LABEL,
            "file_name": format_file_name(template, instance),
            "created_by": instance.get("created_by"),
            "updated_at": timestamp,
            "due_at": due_at,
        })
    return rows


def summarize(rows: Iterable[Dict]) -> Dict[str, int]:
    rows = list(rows)
    summary = {"total": len(rows)}
    summary.update({state: 0 for state in ROW_STATES})
    for row in rows:
        if row["state"] in summary:
            summary[row["state"]] += 1
    return summary


def filter_rows(rows: Iterable[Dict], state: str = "all", search: str = "") -> List[Dict]:
    """Filtra por estado de fila y por texto en título o docente."""
    needle = strip_accents((search or "").strip().lower())
    result = []
    for row in rows:
        if state and state != "all" and row["state"] != state:
            continue
        if needle:
            haystack = strip_accents(f"{row['template_title']} {row['docente']}".lower())
            if needle not in haystack:
                continue
        result.append(row)
    return result


def _timestamp_value(value) -> float:
    return value.timestamp() if value else 0.0


def _due_value(value) -> float:
    return value.timestamp() if value else _FAR_FUTURE


def _name_key(value: str) -> str:
    return strip_accents(value or "").lower()


def sort_rows(rows: Iterable[Dict], by: str = "recent") -> List[Dict]:
    """recent: última actualización primero; name: por título; due: fin más próximo."""
    rows = list(rows)
    if by == "name":
        return sorted(rows, key=lambda row: _name_key(row["template_title"]))
    if by == "due":
        return sorted(rows, key=lambda row: _due_value(row["due_at"]))
    return sorted(rows, key=lambda row: _timestamp_value(row["updated_at"]), reverse=True)


def group_rows(rows: Iterable[Dict], by: str = "recent") -> List[Dict]:
    """Agrupa las filas por plantilla; cada grupo recibe un estado resumen."""
    groups = {}
    for row in rows:
        key = row["template_id"] or f"sin-template-{row['id']}"
        group = groups.get(key)
        if group is None:
            group = groups[key] = {
                "group_key": key,
                "template_id": row["template_id"],
                "template_title": row["template_title"],
                "range_label": row["range_label"],
                "latest_updated_at": row["updated_at"],
                "nearest_due_at": row["due_at"],
                "reports": [],
            }
        group["reports"].append(row)
        if _timestamp_value(row["updated_at"]) > _timestamp_value(group["latest_updated_at"]):
            group["latest_updated_at"] = row["updated_at"]
        if _due_value(row["due_at"]) < _due_value(group["nearest_due_at"]):
            group["nearest_due_at"] = row["due_at"]

    result = []
    for group in groups.values():
        state_count = {state: 0 for state in ROW_STATES}
        for report in group["reports"]:
            state_count[report["state"]] += 1
        group["state_count"] = state_count
        group["group_state"] = next(
            (state for state in GROUP_STATE_PRECEDENCE if state_count[state] > 0), "active"
        )
        result.append(group)

    if by == "name":
        result.sort(key=lambda group: _name_key(group["template_title"]))
    elif by == "due":
        result.sort(key=lambda group: _due_value(group["nearest_due_at"]))
    else:
        result.sort(key=lambda group: _timestamp_value(group["latest_updated_at"]), reverse=True)
    return result


def can_delete_row(row: Dict, is_admin: bool) -> bool:
    return is_admin or row["state"] != "expired"


class ReportService(BaseService):
    def __init__(self):
        super().__init__(collection_name=COLLECTIONS["INSTANCES"])

    def get_report(self, user: Dict, state: str = "all", search: str = "", sort_by: str = "recent", now=None) -> Dict:
        """
        Resumen, filas filtradas y grupos por plantilla. Los especialistas
        solo ven sus propias fichas.
        """
        if state != "all" and state not in ROW_STATES:
            raise ValidationException("Estado de reporte inválido", {"state": f"Opciones: all, {', '.join(ROW_STATES)}"})
        if sort_by not in SORT_OPTIONS:
            raise ValidationException("Orden inválido", {"sort": f"Opciones: {', '.join(SORT_OPTIONS)}"})

        query = {} if user.get("is_admin") else {"created_by": user.get("id")}
        instances = self.list_all(query)
        templates = self.db[COLLECTIONS["TEMPLATES"]].find({})

        rows = build_report_rows(instances, templates, now)
        filtered = sort_rows(filter_rows(rows, state, search), sort_by)
        for row in filtered:
            row["can_delete"] = can_delete_row(row, bool(user.get("is_admin")))
        return {
            "summary": summarize(rows),
            "rows": filtered,
            "groups": group_rows(filtered, sort_by),
        }

    def get_report_detail(self, instance_id: str, user: Dict, now=None) -> Optional[Dict]:
        """Ficha con su plantilla y los datos para generar el PDF."""
        instance = self.get_raw(instance_id)
        if not instance:
            return None
        if not user.get("is_admin") and instance.get("created_by") != user.get("id"):
            return None
        template = self.db[COLLECTIONS["TEMPLATES"]].find_one({"_id": instance.get("template_id")})
        return {
            "instance": serialize_document(instance),
            "template": serialize_document(template),
            "state": report_row_state(template, instance, now),
            "status_label": report_status_label(template, now) if template else None,
            "range_label": format_range(template) if template else NO_RANGE_LABEL,
            "file_name": format_file_name(template, instance),
        }
