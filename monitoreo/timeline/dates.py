from datetime import datetime, date, time, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import os

from flask import current_app, has_app_context

from monitoreo.shared.constants import DEFAULT_TIMEZONE
from monitoreo.shared.logging import log_warning


def get_timezone(name: str = None) -> tzinfo:
    """
    Zona horaria con la que se normalizan los días del calendario.

    Se toma de APP_TIMEZONE (configuración de Flask o variable de entorno);
    un nombre inválido cae en la zona por defecto.
    """
    if name is None:
        if has_app_context():
            name = current_app.config.get("APP_TIMEZONE")
        name = name or os.getenv("APP_TIMEZONE") or DEFAULT_TIMEZONE
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        log_warning(f"Zona horaria desconocida '{name}', se usa {DEFAULT_TIMEZONE}", "monitoreo.timeline")
        return ZoneInfo(DEFAULT_TIMEZONE)


def now_in_tz(tz: tzinfo = None) -> datetime:
    return datetime.now(tz or get_timezone())


def parse_datetime(value, tz: tzinfo = None) -> Optional[datetime]:
    """
    Convierte un valor de fecha a datetime con zona horaria.

    Acepta datetime, date o texto ISO-8601 (con 'Z', con desplazamiento o
    solo la fecha). Los valores sin zona se interpretan en la zona de la
    aplicación. Cualquier otro valor, o un texto inválido, devuelve None.
    """
    if value is None or isinstance(value, bool):
        return None
    tz = tz or get_timezone()

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def to_local_date(value, tz: tzinfo = None) -> Optional[date]:
    """Día de calendario (en la zona de la aplicación) de un instante."""
    tz = tz or get_timezone()
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    parsed = parse_datetime(value, tz)
    if parsed is None:
        return None
    return parsed.astimezone(tz).date()


def start_of_day(day, tz: tzinfo = None) -> datetime:
    tz = tz or get_timezone()
    return datetime.combine(to_local_date(day, tz), time.min, tzinfo=tz)


def end_of_day(day, tz: tzinfo = None) -> datetime:
    tz = tz or get_timezone()
    return datetime.combine(to_local_date(day, tz), time.max, tzinfo=tz)


def day_key(day) -> str:
    """Clave de día para JSON (YYYY-MM-DD)."""
    if isinstance(day, datetime):
        day = day.date()
    return day.isoformat()


def format_short_date(value, tz: tzinfo = None) -> str:
    """dd/mm/yyyy, o cadena vacía si la fecha no es válida."""
    day = to_local_date(value, tz)
    return day.strftime("%d/%m/%Y") if day else ""


def utc_now() -> datetime:
    """Marca de tiempo para created_at/updated_at."""
    return datetime.now(timezone.utc)
