from flask import request
from pydantic import ValidationError

from monitoreo.shared.standardization import APIBlueprint, APIRoute, ErrorCodes
from monitoreo.shared.constants import ROLES
from monitoreo.shared.decorators import get_current_user
from monitoreo.shared.limiter import limiter, CHAT_LIMIT, DATA_QUERY_LIMIT
from monitoreo.shared.logging import log_warning
from .models import ChatRequest, DataQueryRequest
from .services import AssistantService

assistant_bp = APIBlueprint('assistant', __name__)
assistant_service = AssistantService()


def _invalid_request(e: ValidationError):
    log_warning(f"Solicitud inválida al asistente: {e}", "monitoreo.assistant")
    details = {".".join(str(part) for part in error["loc"]): error["msg"] for error in e.errors()}
    return APIRoute.error(ErrorCodes.INVALID_DATA, "Mensaje requerido.", details)


@assistant_bp.route('/chat', methods=['POST'])
@limiter.limit(CHAT_LIMIT)
@APIRoute.standard(auth_required_flag=True, required_fields=['message'])
def chat():
    """
    Envía un mensaje al asistente.

    Cuerpo: `message` y opcionalmente `history` ([{role, text}]). Los
    comandos "Crear monitoreo: <título>" solo los ejecuta un administrador.
    """
    try:
        payload = ChatRequest(**request.get_json())
    except ValidationError as e:
        return _invalid_request(e)

    history = [item.as_chat_message() for item in payload.history]
    result = assistant_service.chat(payload.message, history, get_current_user())
    return APIRoute.success(result)

@assistant_bp.route('/data', methods=['POST'])
@limiter.limit(DATA_QUERY_LIMIT)
@APIRoute.standard(auth_required_flag=True)
def data_query():
    """Consulta de monitoreos publicados: intención, resumen y elementos."""
    try:
        payload = DataQueryRequest(**(request.get_json(silent=True) or {}))
    except ValidationError as e:
        return _invalid_request(e)
    return APIRoute.success(assistant_service.data_query(payload.query))

@assistant_bp.route('/logs', methods=['GET'])
@APIRoute.standard(auth_required_flag=True, roles=[ROLES["ADMIN"]])
def list_logs():
    logs = assistant_service.list_logs(
        user_id=request.args.get('user_id'),
        limit=request.args.get('limit', 100, type=int)
    )
    return APIRoute.success(logs)
