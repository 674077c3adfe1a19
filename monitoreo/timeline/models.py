"""
Estados y catálogos cerrados del ciclo de vida de plantillas y eventos.

Los datos guardados a mano arrastran sinónimos heredados ("inicial" junto a
"initial", "fecha_ugel" junto a "ugel_date", etc.). Las funciones normalize_*
convierten esos valores en los enums de este módulo al momento de leerlos, de
modo que la lógica de estados nunca compara cadenas sueltas.
"""

from enum import Enum
from typing import Optional


class AvailabilityStatus(str, Enum):
    """Estado que el autor asigna a la disponibilidad de una plantilla."""
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    CLOSED = "closed"
    HIDDEN = "hidden"


class TimelineStatus(str, Enum):
    """Estado resuelto de una plantilla en un instante dado."""
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    CLOSED = "closed"


class EventStatus(str, Enum):
    """Estado registrado de un evento de calendario."""
    ACTIVE = "active"
    HIDDEN = "hidden"
    CLOSED = "closed"


class ResolvedEventStatus(str, Enum):
    ACTIVE = "active"
    HIDDEN = "hidden"
    CLOSED = "closed"
    EXPIRED = "expired"


class EventType(str, Enum):
    MONITORING = "monitoring"
    ACTIVITY = "activity"
    UGEL = "ugel_date"


class EducationLevel(str, Enum):
    INITIAL = "initial"
    PRIMARY = "primary"
    SECONDARY = "secondary"


class Modality(str, Enum):
    EBR = "ebr"
    EBE = "ebe"


_LEVEL_SYNONYMS = {
    "inicial": EducationLevel.INITIAL,
    "initial": EducationLevel.INITIAL,
    "primaria": EducationLevel.PRIMARY,
    "primary": EducationLevel.PRIMARY,
    "secundaria": EducationLevel.SECONDARY,
    "secondary": EducationLevel.SECONDARY,
}

_EVENT_TYPE_SYNONYMS = {
    "monitoring": EventType.MONITORING,
    "monitoreo": EventType.MONITORING,
    "activity": EventType.ACTIVITY,
    "actividad": EventType.ACTIVITY,
    "ugel_date": EventType.UGEL,
    "fecha_ugel": EventType.UGEL,
    "celebration": EventType.UGEL,
    "commemorative": EventType.UGEL,
    "efemeride": EventType.UGEL,
}


def _clean(value) -> str:
    if isinstance(value, Enum):
        value = value.value
    return str(value or "").strip().lower()


def normalize_availability_status(value) -> Optional[AvailabilityStatus]:
    """Valor desconocido o ausente -> None (lo decide la regla por defecto)."""
    try:
        return AvailabilityStatus(_clean(value))
    except ValueError:
        return None


def normalize_event_status(value) -> Optional[EventStatus]:
    try:
        return EventStatus(_clean(value))
    except ValueError:
        return None


def normalize_event_type(value) -> EventType:
    """Cualquier tipo no reconocido se trata como monitoreo."""
    return _EVENT_TYPE_SYNONYMS.get(_clean(value), EventType.MONITORING)


def normalize_level(value) -> Optional[EducationLevel]:
    return _LEVEL_SYNONYMS.get(_clean(value))


def normalize_modality(value) -> Optional[Modality]:
    try:
        return Modality(_clean(value))
    except ValueError:
        return None


def event_category(event_type) -> str:
    """Categoría de leyenda del calendario: monitoring, activity o ugel."""
    normalized = normalize_event_type(event_type)
    if normalized == EventType.UGEL:
        return "ugel"
    return normalized.value
