from flask import request

from monitoreo.shared.standardization import APIBlueprint, APIRoute, ErrorCodes
from monitoreo.shared.constants import ROLES, AGENDA_DAYS
from monitoreo.shared.decorators import get_current_user
from monitoreo.shared.exceptions import ValidationException
from monitoreo.shared.validators import event_schema
from monitoreo.timeline.dates import to_local_date
from .services import EventService, SCOPES

events_bp = APIBlueprint('events', __name__)
calendar_bp = APIBlueprint('calendar', __name__)
event_service = EventService()


def _read_filters():
    scope = request.args.get('scope', 'all')
    if scope not in SCOPES:
        raise ValidationException("Filtro inválido", {"scope": f"Opciones: {', '.join(SCOPES)}"})
    return {
        "scope": scope,
        "level": request.args.get('level', 'all'),
        "modality": request.args.get('modality', 'all'),
        "status": request.args.get('status', 'all'),
    }


def _show_drafts():
    return request.args.get('show_drafts', 'false').lower() == 'true'


def _parse_month(value):
    """Acepta YYYY-MM o YYYY-MM-DD; sin valor usa el mes actual."""
    if not value:
        return None
    text = value.strip()
    if len(text) == 7:
        text = f"{text}-01"
    day = to_local_date(text)
    if day is None:
        raise ValidationException("Mes inválido", {"month": "Usa el formato YYYY-MM."})
    return day


@events_bp.route('/', methods=['GET'])
@APIRoute.standard(auth_required_flag=True)
def list_events():
    """
    Lista los eventos de seguimiento.

    Parámetros de consulta: scope (all|mine), level, modality, status
    (active|hidden|closed|expired) y show_drafts (solo administradores).
    """
    events = event_service.list_events(get_current_user(), _read_filters(), show_drafts=_show_drafts())
    return APIRoute.success(events)

@events_bp.route('/<event_id>', methods=['GET'])
@APIRoute.standard(auth_required_flag=True)
def get_event(event_id):
    return APIRoute.success(event_service.get_event(event_id, get_current_user()))

@events_bp.route('/', methods=['POST'])
@APIRoute.standard(auth_required_flag=True, roles=[ROLES["ADMIN"]], schema=event_schema)
def create_event():
    data = request.get_json()
    event = event_service.save_event(data, get_current_user())
    return APIRoute.success(event, message="Evento creado correctamente.", status_code=201)

@events_bp.route('/<event_id>', methods=['PUT'])
@APIRoute.standard(auth_required_flag=True, roles=[ROLES["ADMIN"]], schema=event_schema)
def update_event(event_id):
    data = dict(request.get_json())
    data["id"] = event_id
    event = event_service.save_event(data, get_current_user())
    return APIRoute.success(event, message="Evento actualizado correctamente.")

@events_bp.route('/<event_id>', methods=['DELETE'])
@APIRoute.standard(auth_required_flag=True, roles=[ROLES["ADMIN"]])
def delete_event(event_id):
    if not event_service.delete_event(event_id):
        return APIRoute.error(ErrorCodes.RESOURCE_NOT_FOUND, "Evento no encontrado", status_code=404)
    return APIRoute.success(message="Evento eliminado correctamente.")

@events_bp.route('/<event_id>/visibility', methods=['PUT'])
@APIRoute.standard(auth_required_flag=True, roles=[ROLES["ADMIN"]])
def toggle_event_visibility(event_id):
    """Alterna el evento entre oculto y activo."""
    return APIRoute.success(event_service.toggle_visibility(event_id))

@events_bp.route('/objectives/<objective_id>/toggle', methods=['PUT'])
@APIRoute.standard(auth_required_flag=True)
def toggle_objective(objective_id):
    return APIRoute.success(event_service.toggle_objective(objective_id, get_current_user()))


@calendar_bp.route('/', methods=['GET'])
@APIRoute.standard(auth_required_flag=True)
def get_calendar():
    """
    Grilla de 42 días del mes pedido (?month=YYYY-MM) con los eventos por
    día, el día seleccionado y sus eventos. Acepta los mismos filtros que
    la lista de eventos.
    """
    view = event_service.get_calendar(
        get_current_user(),
        anchor=_parse_month(request.args.get('month')),
        filters=_read_filters(),
        show_drafts=_show_drafts()
    )
    return APIRoute.success(view)

@calendar_bp.route('/agenda', methods=['GET'])
@APIRoute.standard(auth_required_flag=True)
def get_agenda():
    """Eventos de los próximos días (por defecto 7, hoy incluido)."""
    days = request.args.get('days', AGENDA_DAYS, type=int)
    if days is None or days < 1:
        raise ValidationException("Cantidad de días inválida", {"days": "Debe ser un entero positivo."})
    return APIRoute.success(event_service.get_agenda(get_current_user(), days=days))
