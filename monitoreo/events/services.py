from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional

from pymongo import ASCENDING, DESCENDING

from monitoreo.shared.constants import COLLECTIONS, TEMPLATE_STATUS, AGENDA_DAYS
from monitoreo.shared.exceptions import AppException, ValidationException, PermissionException
from monitoreo.shared.logging import log_info
from monitoreo.shared.standardization import BaseService
from monitoreo.shared.utils import serialize_document, normalize_title
from monitoreo.shared.validators import new_id
from monitoreo.templates.models import MonitoringTemplate
from monitoreo.timeline.availability import (
    event_status,
    template_event_status,
    event_status_to_availability,
)
from monitoreo.timeline.calendar_window import (
    build_month_grid,
    bucket_by_day,
    in_window,
    item_interval,
    shift_month,
)
from monitoreo.timeline.dates import parse_datetime, to_local_date, now_in_tz, day_key, utc_now
from monitoreo.timeline.models import (
    EducationLevel,
    EventStatus,
    EventType,
    event_category,
    normalize_event_type,
    normalize_level,
    normalize_modality,
)
from .models import (
    EventResponsible,
    MonitoringEvent,
    build_objectives,
    objective_order,
    objective_text,
)

SCOPES = ("all", "mine")
CATEGORIES = ("monitoring", "activity", "ugel")


def validate_event_payload(data: Dict) -> None:
    """
    Reglas de guardado de un evento:
    título obligatorio, ambas fechas válidas con fin >= inicio, al menos un
    responsable completo (curso obligatorio salvo en inicial) y sin repetir
    especialistas.
    """
    errors = {}
    if not str(data.get("title") or "").strip():
        errors["title"] = "El título es obligatorio."

    if not data.get("start_at") or not data.get("end_at"):
        errors["dates"] = "Debes definir fecha de inicio y vencimiento."
    else:
        start_at = parse_datetime(data.get("start_at"))
        end_at = parse_datetime(data.get("end_at"))
        if start_at is None or end_at is None or end_at < start_at:
            errors["dates"] = "Las fechas del evento no son válidas."

    responsibles = data.get("responsibles") or []
    if not responsibles:
        errors["responsibles"] = "Agrega al menos un especialista responsable."
    elif not isinstance(responsibles, list) or not all(isinstance(item, dict) for item in responsibles):
        errors["responsibles"] = "Cada responsable debe ser un objeto con sus datos."
    else:
        for item in responsibles:
            level = normalize_level(item.get("level"))
            incomplete = (
                not item.get("user_id")
                or level is None
                or normalize_modality(item.get("modality")) is None
                or (level != EducationLevel.INITIAL and not str(item.get("course") or "").strip())
            )
            if incomplete:
                errors["responsibles"] = "Completa todos los datos de responsables."
                break
        else:
            user_ids = [item.get("user_id") for item in responsibles]
            if len(set(user_ids)) != len(user_ids):
                errors["responsibles"] = "No puedes repetir el mismo especialista en un evento."

    objectives = data.get("objectives") or []
    if not isinstance(objectives, list) or not all(isinstance(item, dict) for item in objectives):
        errors["objectives"] = "Cada objetivo debe ser un objeto con su texto."

    if errors:
        raise ValidationException("Revisa los datos del evento.", errors)


def objective_progress(event: Dict) -> int:
    """Porcentaje entero de objetivos completados."""
    objectives = event.get("objectives") or []
    if not objectives:
        return 0
    completed = sum(1 for item in objectives if item.get("completed"))
    return round(completed / len(objectives) * 100)


def category_counts(events: Iterable[Dict]) -> Dict[str, int]:
    counts = {category: 0 for category in CATEGORIES}
    for event in events:
        counts[event_category(event.get("event_type"))] += 1
    return counts


def _sort_key(event: Dict):
    interval = item_interval(event)
    # Los eventos sin fecha van al final
    return (interval is None, interval[0].timestamp() if interval else 0)


def filter_events(events: Iterable[Dict], user: Dict, filters: Optional[Dict] = None, now=None) -> List[Dict]:
    """
    Aplica visibilidad y filtros de la vista de seguimiento.

    Los eventos ocultos solo los ven los administradores. `status` se compara
    contra el estado resuelto (active, hidden, closed, expired).
    """
    filters = filters or {}
    scope = filters.get("scope") or "all"
    level = normalize_level(filters.get("level")) if filters.get("level") not in (None, "", "all") else None
    modality = normalize_modality(filters.get("modality")) if filters.get("modality") not in (None, "", "all") else None
    status = filters.get("status") or "all"
    user_id = user.get("id")

    result = []
    for event in events:
        responsibles = event.get("responsibles") or []
        if not user.get("is_admin") and event.get("status") == EventStatus.HIDDEN.value:
            continue
        if scope == "mine" and event.get("created_by") != user_id \
                and not any(item.get("user_id") == user_id for item in responsibles):
            continue
        if level and not any(normalize_level(item.get("level")) == level for item in responsibles):
            continue
        if modality and not any(normalize_modality(item.get("modality")) == modality for item in responsibles):
            continue
        if status != "all" and event_status(event, now).value != status:
            continue
        result.append(event)
    return result


def select_day(days: List[date], buckets: Dict[date, list], anchor: date, today: date) -> Optional[date]:
    """
    Día seleccionado de la grilla: hoy si tiene eventos; si no, el primer día
    del mes del ancla con eventos; si no, el primer día de la grilla con
    eventos. Sin eventos en la grilla se selecciona hoy (si está visible).
    """
    if today in buckets and buckets[today]:
        return today
    for day in days:
        if day.month == anchor.month and buckets.get(day):
            return day
    for day in days:
        if buckets.get(day):
            return day
    return today if today in buckets else None


def calendar_view(events: List[Dict], anchor, today=None) -> Dict:
    """Grilla mensual con los eventos de cada día y el día seleccionado."""
    today = to_local_date(today) if today is not None else now_in_tz().date()
    anchor_day = to_local_date(anchor) if anchor is not None else today
    days = build_month_grid(anchor_day)
    buckets = bucket_by_day(events, days)
    selected = select_day(days, buckets, anchor_day, today)
    selected_events = buckets.get(selected, []) if selected else []

    return {
        "anchor": day_key(anchor_day.replace(day=1)),
        "previous_month": day_key(shift_month(anchor_day, -1)),
        "next_month": day_key(shift_month(anchor_day, 1)),
        "days": [
            {
                "date": day_key(day),
                "in_month": day.month == anchor_day.month,
                "is_today": day == today,
                "event_ids": [str(event.get("_id", event.get("id"))) for event in buckets[day]],
                "categories": sorted({event_category(event.get("event_type")) for event in buckets[day]}),
            }
            for day in days
        ],
        "selected_day": day_key(selected) if selected else None,
        "selected_events": selected_events,
        "category_counts": category_counts(selected_events),
        "selected_progress": objective_progress(selected_events[0]) if selected_events else 0,
    }


def agenda(events: Iterable[Dict], today=None, days: int = AGENDA_DAYS) -> List[Dict]:
    """Eventos que se cruzan con los próximos `days` días (hoy incluido)."""
    today = today if today is not None else now_in_tz().date()
    return sorted((event for event in events if in_window(event, today, days)), key=_sort_key)


class EventService(BaseService):
    def __init__(self):
        super().__init__(collection_name=COLLECTIONS["EVENTS"])

    @property
    def responsibles(self):
        return self.db[COLLECTIONS["EVENT_RESPONSIBLES"]]

    @property
    def objectives(self):
        return self.db[COLLECTIONS["EVENT_OBJECTIVES"]]

    @property
    def templates(self):
        return self.db[COLLECTIONS["TEMPLATES"]]

    def _attach_relations(self, events: List[Dict]) -> List[Dict]:
        ids = [event["_id"] for event in events]
        if not ids:
            return events
        responsibles = defaultdict(list)
        for row in self.responsibles.find({"event_id": {"$in": ids}}):
            responsibles[row["event_id"]].append(row)
        objectives = defaultdict(list)
        for row in self.objectives.find({"event_id": {"$in": ids}}):
            objectives[row["event_id"]].append(row)

        for event in events:
            event["responsibles"] = responsibles.get(event["_id"], [])
            event["objectives"] = [
                {**row, "text": objective_text(row), "order": objective_order(row), "completed": bool(row.get("completed"))}
                for row in sorted(objectives.get(event["_id"], []), key=objective_order)
            ]
        return events

    def serialize_event(self, event: Dict, now=None) -> Dict:
        result = serialize_document(event)
        result["responsibles"] = [serialize_document(row) for row in event.get("responsibles") or []]
        result["objectives"] = [serialize_document(row) for row in event.get("objectives") or []]
        result["resolved_status"] = event_status(event, now).value
        result["category"] = event_category(event.get("event_type"))
        result["objective_progress"] = objective_progress(event)
        return result

    def get_event(self, event_id: str, user: Optional[Dict] = None, now=None) -> Dict:
        event = self.get_raw(event_id)
        if not event:
            raise AppException("Evento no encontrado", AppException.NOT_FOUND)
        if user is not None and not user.get("is_admin") and event.get("status") == EventStatus.HIDDEN.value:
            raise AppException("Evento no encontrado", AppException.NOT_FOUND)
        return self.serialize_event(self._attach_relations([event])[0], now)

    def save_event(self, data: Dict, user: Dict) -> Dict:
        """
        Crea o actualiza un evento con sus responsables y objetivos, que se
        reemplazan por completo. Los eventos de monitoreo se sincronizan con
        la plantilla del mismo id (se crea un borrador si no existe).
        """
        validate_event_payload(data)
        event_id = data.get("id") or new_id()
        existing = self.get_raw(event_id) or {}

        event = MonitoringEvent(
            _id=event_id,
            title=data["title"],
            event_type=data.get("event_type") or EventType.MONITORING.value,
            description=data.get("description"),
            start_at=parse_datetime(data["start_at"]),
            end_at=parse_datetime(data["end_at"]),
            status=data.get("status") or EventStatus.ACTIVE.value,
            created_by=existing.get("created_by") or user.get("id"),
            created_at=existing.get("created_at"),
            updated_at=utc_now()
        )
        document = event.to_dict()
        self.upsert(event_id, document)

        if event.event_type == EventType.MONITORING:
            self._sync_template(document, user)

        self.responsibles.delete_many({"event_id": event_id})
        responsible_rows = [
            EventResponsible(
                event_id, item["user_id"], item.get("level"), item.get("modality"), item.get("course")
            ).to_dict()
            for item in data["responsibles"]
        ]
        self.responsibles.insert_many(responsible_rows)

        self.objectives.delete_many({"event_id": event_id})
        objective_rows = [objective.to_dict() for objective in build_objectives(event_id, data.get("objectives"))]
        if objective_rows:
            self.objectives.insert_many(objective_rows)

        log_info(f"Evento {event_id} guardado ({event.event_type.value})", "monitoreo.events")
        return self.get_event(event_id)

    def _sync_template(self, event: Dict, user: Dict) -> None:
        existing = self.templates.find_one({"_id": event["_id"]}) or {}
        availability = dict(existing.get("availability") or {})
        availability.update({
            "status": event_status_to_availability(event["status"]).value,
            "startAt": event["start_at"],
            "endAt": event["end_at"],
        })
        template = MonitoringTemplate(
            _id=event["_id"],
            title=event["title"],
            description=event.get("description") or existing.get("description") or "",
            status=existing.get("status") or TEMPLATE_STATUS["DRAFT"],
            sections=existing.get("sections") or [],
            levels_config=existing.get("levels_config"),
            availability=availability,
            created_by=existing.get("created_by") or user.get("email") or user.get("id"),
            created_at=existing.get("created_at"),
            updated_at=utc_now()
        )
        self.templates.replace_one({"_id": event["_id"]}, template.to_dict(), upsert=True)

    def delete_event(self, event_id: str) -> bool:
        """Elimina el evento, sus relaciones y la plantilla con el mismo id."""
        self.responsibles.delete_many({"event_id": event_id})
        self.objectives.delete_many({"event_id": event_id})
        deleted_event = self.delete(event_id)
        deleted_template = self.templates.delete_one({"_id": event_id}).deleted_count > 0
        if deleted_event or deleted_template:
            log_info(f"Evento {event_id} eliminado", "monitoreo.events")
        return deleted_event or deleted_template

    def toggle_visibility(self, event_id: str) -> Dict:
        event = self.get_raw(event_id)
        if not event:
            raise AppException("Evento no encontrado", AppException.NOT_FOUND)
        next_status = EventStatus.ACTIVE if event.get("status") == EventStatus.HIDDEN.value else EventStatus.HIDDEN
        self.update(event_id, {"status": next_status.value, "updated_at": utc_now()})
        return self.get_event(event_id)

    def toggle_objective(self, objective_id: str, user: Dict) -> Dict:
        if not user.get("is_admin"):
            raise PermissionException("Solo un administrador puede marcar objetivos.")
        objective = self.objectives.find_one({"_id": objective_id})
        if not objective:
            raise AppException("Objetivo no encontrado", AppException.NOT_FOUND)
        completed = not bool(objective.get("completed"))
        self.objectives.update_one({"_id": objective_id}, {"$set": {"completed": completed}})
        objective["completed"] = completed
        return serialize_document(objective)

    def _template_events(self, templates: List[Dict], existing_ids: set, show_drafts: bool) -> List[Dict]:
        """Eventos derivados de plantillas con ambas fechas y sin evento guardado."""
        result = []
        for template in templates:
            availability = template.get("availability") or {}
            if not availability.get("startAt") or not availability.get("endAt"):
                continue
            if template["_id"] in existing_ids:
                continue
            if template.get("status") != TEMPLATE_STATUS["PUBLISHED"] and not show_drafts:
                continue
            result.append({
                "_id": template["_id"],
                "title": template.get("title"),
                "event_type": EventType.MONITORING.value,
                "description": template.get("description") or "",
                "start_at": availability.get("startAt"),
                "end_at": availability.get("endAt"),
                "status": template_event_status(availability).value,
                "created_by": template.get("created_by"),
                "created_at": template.get("created_at"),
                "updated_at": template.get("updated_at"),
                "responsibles": [],
                "objectives": [],
                "synthetic": True,
            })
        return result

    def load_events(self, user: Dict, show_drafts: bool = False) -> List[Dict]:
        """
        Eventos guardados más los derivados de plantillas, ordenados por inicio.

        Los eventos de plantillas en borrador solo se incluyen si un
        administrador pide ver borradores. Un evento de monitoreo sin
        plantilla propia se asocia por título normalizado.
        """
        show_drafts = bool(user.get("is_admin") and show_drafts)
        templates = list(self.templates.find({}).sort("updated_at", DESCENDING))
        templates_by_id = {template["_id"]: template for template in templates}
        published_titles = {
            normalize_title(t.get("title")) for t in templates if t.get("status") == TEMPLATE_STATUS["PUBLISHED"]
        }
        draft_titles = {
            normalize_title(t.get("title")) for t in templates if t.get("status") != TEMPLATE_STATUS["PUBLISHED"]
        }

        stored = []
        for event in self.list_all({}, sort=[("start_at", ASCENDING)]):
            source = templates_by_id.get(event["_id"])
            if source is not None:
                if source.get("status") == TEMPLATE_STATUS["PUBLISHED"] or show_drafts:
                    stored.append(event)
                continue
            if normalize_event_type(event.get("event_type")) != EventType.MONITORING or show_drafts:
                stored.append(event)
                continue
            title_key = normalize_title(event.get("title"))
            if title_key in published_titles or title_key not in draft_titles:
                stored.append(event)

        self._attach_relations(stored)
        existing_ids = {event["_id"] for event in stored}
        merged = stored + self._template_events(templates, existing_ids, show_drafts)
        return sorted(merged, key=_sort_key)

    def list_events(self, user: Dict, filters: Optional[Dict] = None, show_drafts: bool = False, now=None) -> List[Dict]:
        events = filter_events(self.load_events(user, show_drafts), user, filters, now)
        return [self.serialize_event(event, now) for event in events]

    def get_calendar(self, user: Dict, anchor=None, filters: Optional[Dict] = None,
                     show_drafts: bool = False, today=None, now=None) -> Dict:
        events = filter_events(self.load_events(user, show_drafts), user, filters, now)
        view = calendar_view(events, anchor, today)
        view["selected_events"] = [self.serialize_event(event, now) for event in view["selected_events"]]
        return view

    def get_agenda(self, user: Dict, today=None, days: int = AGENDA_DAYS, now=None) -> List[Dict]:
        events = filter_events(self.load_events(user), user, None, now)
        return [self.serialize_event(event, now) for event in agenda(events, today, days)]
