from flask import request

from monitoreo.shared.standardization import APIBlueprint, APIRoute
from monitoreo.shared.constants import ROLES
from monitoreo.shared.decorators import get_current_user
from monitoreo.shared.validators import template_schema
from .services import TemplateService

templates_bp = APIBlueprint('templates', __name__)
template_service = TemplateService()

@templates_bp.route('/', methods=['GET'])
@APIRoute.standard(auth_required_flag=True)
def list_templates():
    """
    Lista las plantillas con su estado resuelto (timeline_status).
    Los administradores pueden pedir borradores con ?include_drafts=true.
    """
    include_drafts = request.args.get('include_drafts', 'false').lower() == 'true'
    templates = template_service.list_templates(get_current_user(), include_drafts=include_drafts)
    return APIRoute.success(templates)

@templates_bp.route('/available', methods=['GET'])
@APIRoute.standard(auth_required_flag=True)
def list_available_templates():
    """Plantillas publicadas habilitadas hoy."""
    return APIRoute.success(template_service.list_available())

@templates_bp.route('/<template_id>', methods=['GET'])
@APIRoute.standard(auth_required_flag=True)
def get_template(template_id):
    return APIRoute.success(template_service.get_template(template_id, get_current_user()))

@templates_bp.route('/', methods=['POST'])
@APIRoute.standard(auth_required_flag=True, roles=[ROLES["ADMIN"]], schema=template_schema)
def save_template():
    """
    Crea o actualiza una plantilla. Si el cuerpo trae `id` se actualiza esa
    plantilla; si no, se crea una nueva.
    """
    data = request.get_json()
    template = template_service.save_template(data, get_current_user())
    status_code = 200 if data.get("id") else 201
    return APIRoute.success(template, message="Plantilla guardada", status_code=status_code)

@templates_bp.route('/<template_id>', methods=['PUT'])
@APIRoute.standard(auth_required_flag=True, roles=[ROLES["ADMIN"]], schema=template_schema)
def update_template(template_id):
    data = dict(request.get_json())
    data["id"] = template_id
    template = template_service.save_template(data, get_current_user())
    return APIRoute.success(template, message="Plantilla actualizada")

@templates_bp.route('/<template_id>/availability', methods=['PUT'])
@APIRoute.standard(auth_required_flag=True, roles=[ROLES["ADMIN"]], required_fields=['status'])
def set_template_availability(template_id):
    """Cierra, oculta o reabre una plantilla sin eliminarla."""
    template = template_service.set_availability_status(
        template_id, request.get_json()['status'], get_current_user()
    )
    return APIRoute.success(template, message="Disponibilidad actualizada")
