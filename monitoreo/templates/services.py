from typing import Dict, List, Optional

from pymongo.errors import PyMongoError

from monitoreo.shared.constants import COLLECTIONS, TEMPLATE_STATUS, LEVELS_CONFIG
from monitoreo.shared.exceptions import AppException, ValidationException, PermissionException
from monitoreo.shared.logging import log_info, log_error
from monitoreo.shared.standardization import BaseService
from monitoreo.shared.utils import serialize_document
from monitoreo.shared.validators import new_id
from monitoreo.timeline.availability import resolve_status, template_event_status
from monitoreo.timeline.dates import parse_datetime, utc_now
from monitoreo.timeline.models import (
    AvailabilityStatus,
    EventType,
    TimelineStatus,
    normalize_availability_status,
)
from .models import MonitoringTemplate


def _is_object_list(value) -> bool:
    return isinstance(value, list) and all(isinstance(item, dict) for item in value)


def validate_template_payload(data: Dict) -> None:
    """
    Valida una plantilla antes de guardarla.

    Raises:
        ValidationException: con el detalle de cada campo inválido
    """
    errors = {}
    if not str(data.get("title") or "").strip():
        errors["title"] = "El título es obligatorio."

    levels_config = data.get("levels_config") or {}
    levels = levels_config.get("levels") if isinstance(levels_config, dict) else ""
    if levels is not None:
        if not _is_object_list(levels):
            errors["levels_config"] = "La escala debe ser una lista de niveles."
        elif not LEVELS_CONFIG["MIN_LEVELS"] <= len(levels) <= LEVELS_CONFIG["MAX_LEVELS"]:
            errors["levels_config"] = (
                f"La escala debe tener entre {LEVELS_CONFIG['MIN_LEVELS']} "
                f"y {LEVELS_CONFIG['MAX_LEVELS']} niveles."
            )
        else:
            keys = [str(level.get("key") or "").strip() for level in levels]
            if any(not key for key in keys) or len(set(keys)) != len(keys):
                errors["levels_config"] = "Cada nivel debe tener una clave única."

    sections = data.get("sections") or []
    if not _is_object_list(sections) or not all(
        _is_object_list(section.get("questions") or []) for section in sections
    ):
        errors["sections"] = "Las secciones y sus preguntas deben ser objetos."
    elif data.get("status") == TEMPLATE_STATUS["PUBLISHED"]:
        if not sections:
            errors["sections"] = "Una plantilla publicada debe tener al menos una sección."
        elif any(not section.get("questions") for section in sections):
            errors["sections"] = "Cada sección debe tener al menos una pregunta."

    availability = data.get("availability") or {}
    if not isinstance(availability, dict):
        errors["availability"] = "La disponibilidad debe ser un objeto."
        availability = {}
    start_at = parse_datetime(availability.get("startAt"))
    end_at = parse_datetime(availability.get("endAt"))
    if availability.get("startAt") and start_at is None:
        errors["availability.startAt"] = "Fecha de inicio inválida."
    if availability.get("endAt") and end_at is None:
        errors["availability.endAt"] = "Fecha de fin inválida."
    if start_at and end_at and end_at < start_at:
        errors["availability.endAt"] = "La fecha de fin debe ser posterior a la de inicio."

    if errors:
        raise ValidationException("Revisa los datos de la plantilla.", errors)


class TemplateService(BaseService):
    def __init__(self):
        super().__init__(collection_name=COLLECTIONS["TEMPLATES"])

    @property
    def events(self):
        return self.db[COLLECTIONS["EVENTS"]]

    def with_timeline(self, template: Dict, now=None) -> Dict:
        """Serializa una plantilla agregando su estado resuelto."""
        result = serialize_document(template)
        result["timeline_status"] = resolve_status(template.get("availability"), now).value
        return result

    def save_template(self, data: Dict, user: Dict) -> Dict:
        """
        Crea o actualiza una plantilla (upsert por id).

        Conserva created_at/created_by de la versión guardada. Si la plantilla
        tiene fecha de inicio y de fin, se sincroniza el evento de calendario
        con el mismo id.
        """
        validate_template_payload(data)
        template_id = data.get("id") or new_id()
        existing = self.get_raw(template_id)

        payload = {key: value for key, value in data.items() if key not in ("id", "_id")}
        payload["created_by"] = (existing or {}).get("created_by") or user.get("email") or user.get("id")
        payload["created_at"] = (existing or {}).get("created_at")
        payload["updated_at"] = utc_now()
        template = MonitoringTemplate(_id=template_id, **payload)
        document = template.to_dict()

        self.upsert(template_id, document)
        log_info(f"Plantilla {template_id} guardada con estado {template.status}", "monitoreo.templates")

        if document["availability"]["startAt"] and document["availability"]["endAt"]:
            self._sync_event(document, user)

        return self.with_timeline(document)

    def _sync_event(self, template: Dict, user: Dict) -> None:
        availability = template["availability"]
        event = {
            "title": template["title"],
            "description": template.get("description") or None,
            "event_type": EventType.MONITORING.value,
            "start_at": availability["startAt"],
            "end_at": availability["endAt"],
            "status": template_event_status(availability).value,
            "updated_at": utc_now(),
        }
        try:
            self.events.update_one(
                {"_id": template["_id"]},
                {"$set": event, "$setOnInsert": {"created_by": user.get("id"), "created_at": utc_now()}},
                upsert=True
            )
        except PyMongoError as e:
            log_error("Plantilla guardada, pero no se pudo sincronizar con Seguimiento", e, "monitoreo.templates")
            raise AppException(
                "Plantilla guardada, pero no se pudo sincronizar con Seguimiento.",
                AppException.INTERNAL_ERROR
            )

    def get_template(self, template_id: str, user: Optional[Dict] = None, now=None) -> Dict:
        template = self.get_raw(template_id)
        if not template:
            raise AppException("Plantilla no encontrada", AppException.NOT_FOUND)
        if user is not None and not user.get("is_admin") and template.get("status") != TEMPLATE_STATUS["PUBLISHED"]:
            raise AppException("Plantilla no encontrada", AppException.NOT_FOUND)
        return self.with_timeline(template, now)

    def list_templates(self, user: Dict, include_drafts: bool = False, now=None) -> List[Dict]:
        """Los especialistas solo ven plantillas publicadas."""
        query = {}
        if not (user.get("is_admin") and include_drafts):
            query["status"] = TEMPLATE_STATUS["PUBLISHED"]
        templates = self.list_all(query, sort=[("updated_at", -1)])
        return [self.with_timeline(template, now) for template in templates]

    def list_available(self, now=None) -> List[Dict]:
        """Plantillas publicadas que hoy están habilitadas para llenarse."""
        templates = self.list_all({"status": TEMPLATE_STATUS["PUBLISHED"]}, sort=[("updated_at", -1)])
        return [
            self.with_timeline(template, now) for template in templates
            if resolve_status(template.get("availability"), now) == TimelineStatus.ACTIVE
        ]

    def set_availability_status(self, template_id: str, status: str, user: Dict) -> Dict:
        """Cambio de estado sin borrar la plantilla (cerrar, ocultar, reabrir)."""
        if not user.get("is_admin"):
            raise PermissionException()
        normalized = normalize_availability_status(status)
        if normalized is None:
            raise ValidationException(
                "Estado de disponibilidad inválido",
                {"status": f"Opciones válidas: {', '.join(s.value for s in AvailabilityStatus)}"}
            )
        template = self.get_raw(template_id)
        if not template:
            raise AppException("Plantilla no encontrada", AppException.NOT_FOUND)

        self.update(template_id, {"availability.status": normalized.value, "updated_at": utc_now()})
        self.events.update_one(
            {"_id": template_id},
            {"$set": {"status": template_event_status({"status": normalized.value}).value, "updated_at": utc_now()}}
        )
        availability = dict(template.get("availability") or {})
        availability["status"] = normalized.value
        template["availability"] = availability
        return self.with_timeline(template)
