"""
Grilla mensual y agrupación de eventos por día.

Todas las funciones son puras: reciben los elementos ya consultados y
devuelven estructuras nuevas en cada llamada. Un elemento es cualquier
mapping u objeto con start_at/end_at (o availability.startAt/endAt en el
caso de plantillas); si sus fechas no se pueden interpretar, queda fuera de
la grilla y de la ventana sin lanzar error.
"""

from datetime import date, datetime, timedelta, tzinfo
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from dateutil.relativedelta import relativedelta

from monitoreo.timeline.dates import (
    get_timezone,
    parse_datetime,
    to_local_date,
    start_of_day,
    end_of_day,
)

GRID_DAYS = 42


def _field(item, name):
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _present(value) -> bool:
    return value is not None and not (isinstance(value, str) and not value.strip())


def _parse_pair(source, start_name, end_name, tz):
    """(inicio, fin) parseados; False si alguna fecha presente es inválida."""
    raw_start, raw_end = _field(source, start_name), _field(source, end_name)
    start, end = parse_datetime(raw_start, tz), parse_datetime(raw_end, tz)
    if (_present(raw_start) and start is None) or (_present(raw_end) and end is None):
        return False
    return start, end


def item_interval(item, tz: tzinfo = None) -> Optional[Tuple[datetime, datetime]]:
    """
    Intervalo [inicio, fin] de un elemento.

    Con una sola fecha el intervalo es ese instante. Sin fechas, o con
    alguna fecha presente que no se puede interpretar, devuelve None.
    """
    tz = tz or get_timezone()
    pair = _parse_pair(item, "start_at", "end_at", tz)
    if pair is False:
        return None
    start, end = pair

    if start is None and end is None:
        availability = _field(item, "availability")
        if availability:
            pair = _parse_pair(availability, "startAt", "endAt", tz)
            if pair is False:
                return None
            start, end = pair

    if start is None and end is None:
        return None
    return (start or end, end or start)


def build_month_grid(anchor) -> List[date]:
    """
    42 días consecutivos (6 semanas de lunes a domingo) que cubren el mes de
    `anchor`. Solo importan el mes y el año del ancla.
    """
    anchor_day = anchor.date() if isinstance(anchor, datetime) else anchor
    first = anchor_day.replace(day=1)
    grid_start = first - timedelta(days=first.weekday())
    return [grid_start + timedelta(days=offset) for offset in range(GRID_DAYS)]


def shift_month(anchor, delta: int) -> date:
    """Primer día del mes desplazado `delta` meses respecto del ancla."""
    anchor_day = anchor.date() if isinstance(anchor, datetime) else anchor
    return anchor_day.replace(day=1) + relativedelta(months=delta)


def bucket_by_day(items: Iterable, days: Iterable, tz: tzinfo = None) -> Dict[date, list]:
    """
    Agrupa los elementos por día: un elemento cae en el día d si d está
    entre el día de inicio y el día de fin, ambos inclusive.

    Todos los días solicitados aparecen como clave, aunque no tengan
    elementos. Dentro de cada día se conserva el orden de entrada.
    """
    tz = tz or get_timezone()
    buckets: Dict[date, list] = {}
    for day in days:
        local_day = to_local_date(day, tz)
        if local_day is not None:
            buckets.setdefault(local_day, [])

    for item in items:
        interval = item_interval(item, tz)
        if interval is None:
            continue
        first_day = interval[0].astimezone(tz).date()
        last_day = interval[1].astimezone(tz).date()
        for day, bucket in buckets.items():
            if first_day <= day <= last_day:
                bucket.append(item)
    return buckets


def window_bounds(today, days: int = 7, tz: tzinfo = None) -> Tuple[datetime, datetime]:
    """Inicio del día `today` y fin del día `today + days - 1`."""
    tz = tz or get_timezone()
    first = to_local_date(today, tz)
    last = first + timedelta(days=max(days, 1) - 1)
    return start_of_day(first, tz), end_of_day(last, tz)


def in_window(item, today, days: int = 7, tz: tzinfo = None) -> bool:
    """True si el intervalo del elemento se cruza con la ventana de `days` días."""
    tz = tz or get_timezone()
    interval = item_interval(item, tz)
    if interval is None:
        return False
    window_start, window_end = window_bounds(today, days, tz)
    start, end = interval
    return start <= window_end and end >= window_start
