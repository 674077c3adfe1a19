from datetime import datetime
from typing import List, Dict, Optional, Any

from monitoreo.shared.constants import TEMPLATE_STATUS, LEVELS_CONFIG, DEFAULT_LEVELS
from monitoreo.shared.validators import new_id
from monitoreo.timeline.dates import parse_datetime, utc_now
from monitoreo.timeline.models import normalize_availability_status



def hydrate_orders(sections: List[Dict]) -> List[Dict]:
    """Recalcula `order` de secciones y preguntas a partir de su posición."""
    hydrated = []
    for section_index, section in enumerate(sections or []):
        section = dict(section)
        section.setdefault("id", new_id())
        section["order"] = section_index
        questions = []
        for question_index, question in enumerate(section.get("questions") or []):
            question = dict(question)
            question.setdefault("id", new_id())
            question["order"] = question_index
            questions.append(question)
        section["questions"] = questions
        hydrated.append(section)
    return hydrated


def build_levels_config(levels: Optional[List[Dict]]) -> Dict[str, Any]:
    levels = [dict(level) for level in (levels or DEFAULT_LEVELS)]
    level_type = LEVELS_CONFIG["CUSTOM_TYPE"] if len(levels) > LEVELS_CONFIG["MIN_LEVELS"] \
        else LEVELS_CONFIG["STANDARD_TYPE"]
    return {"type": level_type, "levels": levels}


def build_availability(data: Optional[Dict]) -> Dict[str, Any]:
    """
    Disponibilidad tal como se guarda: estado normalizado (None si es
    desconocido) y fechas como datetime.
    """
    data = data or {}
    status = normalize_availability_status(data.get("status"))
    return {
        "status": status.value if status else None,
        "startAt": parse_datetime(data.get("startAt")),
        "endAt": parse_datetime(data.get("endAt")),
    }


class MonitoringTemplate:
    """
    Plantilla de monitoreo: cuestionario con secciones, preguntas y escala
    de niveles, más la ventana de disponibilidad que controla su ciclo de vida.
    """
    def __init__(
        self,
        title: str,
        description: str = "",
        status: str = TEMPLATE_STATUS["DRAFT"],
        sections: Optional[List[Dict]] = None,
        levels_config: Optional[Dict] = None,
        availability: Optional[Dict] = None,
        created_by: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        _id: Optional[str] = None,
        **kwargs
    ):
        self._id = _id or kwargs.get("id") or new_id()
        self.title = (title or "").strip()
        self.description = (description or "").strip()
        self.status = status if status in TEMPLATE_STATUS.values() else TEMPLATE_STATUS["DRAFT"]
        self.sections = hydrate_orders(sections or [])
        self.levels_config = build_levels_config((levels_config or {}).get("levels"))
        self.availability = build_availability(availability)
        self.created_by = created_by
        self.created_at = created_at or utc_now()
        self.updated_at = updated_at or utc_now()

    def to_dict(self) -> Dict[str, Any]:
        """Convierte el objeto a un diccionario para almacenamiento en MongoDB"""
        return {
            "_id": self._id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "sections": self.sections,
            "levels_config": self.levels_config,
            "availability": self.availability,
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at
        }
