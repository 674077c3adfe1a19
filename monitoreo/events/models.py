from datetime import datetime
from typing import List, Dict, Optional, Any

from monitoreo.shared.validators import new_id
from monitoreo.timeline.dates import utc_now
from monitoreo.timeline.models import (
    EducationLevel,
    EventStatus,
    Modality,
    normalize_event_status,
    normalize_event_type,
    normalize_level,
    normalize_modality,
)

# Nombres de columna que usaron versiones anteriores para el texto del objetivo
OBJECTIVE_TEXT_KEYS = ("text", "objective_text", "description", "label", "objective")
OBJECTIVE_ORDER_KEYS = ("order", "order_index", "position")


def objective_text(objective: Dict) -> str:
    for key in OBJECTIVE_TEXT_KEYS:
        if isinstance(objective.get(key), str):
            return objective[key]
    return ""


def objective_order(objective: Dict) -> int:
    for key in OBJECTIVE_ORDER_KEYS:
        if isinstance(objective.get(key), int):
            return objective[key]
    return 0


class EventResponsible:
    """Especialista asignado a un evento, con su nivel, modalidad y curso."""
    def __init__(
        self,
        event_id: str,
        user_id: str,
        level: Optional[str] = None,
        modality: Optional[str] = None,
        course: Optional[str] = None,
        _id: Optional[str] = None
    ):
        self._id = _id or new_id()
        self.event_id = event_id
        self.user_id = user_id
        self.level = normalize_level(level) or EducationLevel.INITIAL
        self.modality = normalize_modality(modality) or Modality.EBR
        # Inicial no lleva curso
        self.course = None if self.level == EducationLevel.INITIAL else (course or "").strip()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "_id": self._id,
            "event_id": self.event_id,
            "user_id": self.user_id,
            "level": self.level.value,
            "modality": self.modality.value,
            "course": self.course
        }


class EventObjective:
    def __init__(self, event_id: str, text: str, order: int, completed: bool = False, _id: Optional[str] = None):
        self._id = _id or new_id()
        self.event_id = event_id
        self.text = (text or "").strip()
        self.order = order
        self.completed = bool(completed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "_id": self._id,
            "event_id": self.event_id,
            "text": self.text,
            "order": self.order,
            "completed": self.completed
        }


class MonitoringEvent:
    """
    Entrada de calendario: monitoreo, actividad o fecha UGEL.

    Un evento de monitoreo comparte id con la plantilla de la que proviene.
    """
    def __init__(
        self,
        title: str,
        start_at: datetime,
        end_at: datetime,
        event_type: str = "monitoring",
        description: Optional[str] = None,
        status: str = EventStatus.ACTIVE.value,
        created_by: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        _id: Optional[str] = None
    ):
        self._id = _id or new_id()
        self.title = (title or "").strip()
        self.event_type = normalize_event_type(event_type)
        self.description = (description or "").strip() or None
        self.start_at = start_at
        self.end_at = end_at
        self.status = normalize_event_status(status) or EventStatus.ACTIVE
        self.created_by = created_by
        self.created_at = created_at or utc_now()
        self.updated_at = updated_at or utc_now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "_id": self._id,
            "title": self.title,
            "event_type": self.event_type.value,
            "description": self.description,
            "start_at": self.start_at,
            "end_at": self.end_at,
            "status": self.status.value,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at
        }


def build_objectives(event_id: str, objectives: Optional[List[Dict]]) -> List[EventObjective]:
    """Descarta objetivos sin texto; el orden es la posición en la lista."""
    rows = [item for item in (objectives or []) if objective_text(item).strip()]
    return [
        EventObjective(event_id, objective_text(item), index, item.get("completed", False))
        for index, item in enumerate(rows)
    ]
