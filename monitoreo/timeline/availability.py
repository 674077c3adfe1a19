"""
Resolución del estado de disponibilidad de plantillas y eventos.

Las reglas se evalúan en orden y gana la primera que aplica:

1. estado registrado "closed"                     -> closed
2. estado registrado "scheduled"                  -> scheduled
3. startAt presente y now < startAt               -> scheduled
4. endAt presente y now > endAt                   -> closed
5. estado registrado "active"                     -> active
6. en otro caso: scheduled si hay alguna fecha, si no active

Un cierre o una programación explícita se imponen a las fechas, pero un
"active" explícito se evalúa recién después de ellas. Varias pantallas
dependen de ese orden para sus badges de "Cerrado"/"Activo".
"""

from datetime import datetime
from typing import Mapping, Optional

from monitoreo.timeline.dates import parse_datetime, now_in_tz, get_timezone
from monitoreo.timeline.models import (
    AvailabilityStatus,
    TimelineStatus,
    EventStatus,
    ResolvedEventStatus,
    normalize_availability_status,
    normalize_event_status,
)


def _read(record, *names):
    for name in names:
        if isinstance(record, Mapping):
            if record.get(name) is not None:
                return record.get(name)
        elif getattr(record, name, None) is not None:
            return getattr(record, name)
    return None


def _resolve_now(now, tz) -> datetime:
    if now is None:
        return now_in_tz(tz)
    return parse_datetime(now, tz) or now_in_tz(tz)


def resolve_status(availability: Optional[Mapping], now=None, tz=None) -> TimelineStatus:
    """
    Estado de una plantilla (scheduled, active o closed) en el instante `now`.

    Args:
        availability: Registro {status?, startAt?, endAt?} o None
        now: Instante de evaluación; por defecto, el reloj del sistema

    Las fechas inválidas se tratan como ausentes; nunca lanza excepción.
    """
    if not availability:
        return TimelineStatus.ACTIVE

    tz = tz or get_timezone()
    current = _resolve_now(now, tz)
    status = normalize_availability_status(_read(availability, "status"))
    start_at = parse_datetime(_read(availability, "startAt", "start_at"), tz)
    end_at = parse_datetime(_read(availability, "endAt", "end_at"), tz)

    if status == AvailabilityStatus.CLOSED:
        return TimelineStatus.CLOSED
    if status == AvailabilityStatus.SCHEDULED:
        return TimelineStatus.SCHEDULED
    if start_at is not None and current < start_at:
        return TimelineStatus.SCHEDULED
    if end_at is not None and current > end_at:
        return TimelineStatus.CLOSED
    if status == AvailabilityStatus.ACTIVE:
        return TimelineStatus.ACTIVE
    if start_at is not None or end_at is not None:
        return TimelineStatus.SCHEDULED
    return TimelineStatus.ACTIVE


def event_status(event, now=None, tz=None) -> ResolvedEventStatus:
    """
    Estado de un evento: hidden y closed registrados tienen prioridad; si no,
    un evento cuyo end_at ya pasó se reporta como expired.
    """
    tz = tz or get_timezone()
    status = normalize_event_status(_read(event, "status"))
    if status == EventStatus.HIDDEN:
        return ResolvedEventStatus.HIDDEN
    if status == EventStatus.CLOSED:
        return ResolvedEventStatus.CLOSED

    end_at = parse_datetime(_read(event, "end_at", "endAt"), tz)
    if end_at is not None and end_at < _resolve_now(now, tz):
        return ResolvedEventStatus.EXPIRED
    return ResolvedEventStatus.ACTIVE


def template_event_status(availability: Optional[Mapping]) -> EventStatus:
    """Estado del evento que se sincroniza a partir de una plantilla."""
    status = normalize_availability_status(_read(availability or {}, "status"))
    if status == AvailabilityStatus.CLOSED:
        return EventStatus.CLOSED
    if status == AvailabilityStatus.HIDDEN:
        return EventStatus.HIDDEN
    return EventStatus.ACTIVE


def event_status_to_availability(status) -> AvailabilityStatus:
    """Estado de disponibilidad que recibe la plantilla de un evento de monitoreo."""
    normalized = normalize_event_status(status)
    if normalized == EventStatus.CLOSED:
        return AvailabilityStatus.CLOSED
    if normalized == EventStatus.HIDDEN:
        return AvailabilityStatus.HIDDEN
    return AvailabilityStatus.ACTIVE
