"""
Núcleo de fechas del monitoreo.

- availability: estado de plantillas y eventos según fechas y estado registrado
- calendar_window: grilla mensual, agrupación por día y ventana de agenda
- models: enums de estado y normalización de valores heredados
"""

from .availability import (
    resolve_status,
    event_status,
    template_event_status,
    event_status_to_availability,
)
from .calendar_window import (
    build_month_grid,
    bucket_by_day,
    in_window,
    item_interval,
    window_bounds,
    shift_month,
)
from .dates import parse_datetime, start_of_day, end_of_day, day_key
from .models import (
    AvailabilityStatus,
    TimelineStatus,
    EventStatus,
    ResolvedEventStatus,
    EventType,
    EducationLevel,
    Modality,
)
