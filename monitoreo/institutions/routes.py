from flask import request

from monitoreo.shared.standardization import APIBlueprint, APIRoute
from monitoreo.shared.constants import ROLES, INSTITUTION_STATUS
from monitoreo.shared.decorators import get_current_user
from monitoreo.shared.validators import institution_schema
from .services import InstitutionService

institutions_bp = APIBlueprint('institutions', __name__)
institution_service = InstitutionService()

@institutions_bp.route('/', methods=['GET'])
@APIRoute.standard(auth_required_flag=True)
def list_institutions():
    """
    Lista paginada de instituciones.

    Parámetros: search, estado (active|inactive|all), page, nivel, modalidad,
    distrito y rei.
    """
    result = institution_service.list_institutions(
        search=request.args.get('search'),
        estado=request.args.get('estado', 'all'),
        page=request.args.get('page', 1, type=int),
        filters={key: request.args.get(key) for key in ('nivel', 'modalidad', 'distrito', 'rei')}
    )
    return APIRoute.success(result)

@institutions_bp.route('/summary', methods=['GET'])
@APIRoute.standard(auth_required_flag=True)
def institutions_summary():
    return APIRoute.success(institution_service.summary())

@institutions_bp.route('/<institution_id>', methods=['GET'])
@APIRoute.standard(auth_required_flag=True)
def get_institution(institution_id):
    return APIRoute.success(institution_service.get_institution(institution_id))

@institutions_bp.route('/', methods=['POST'])
@APIRoute.standard(auth_required_flag=True, roles=[ROLES["ADMIN"]], schema=institution_schema)
def create_institution():
    data = dict(request.get_json())
    data.pop("id", None)
    institution = institution_service.save_institution(data, get_current_user())
    return APIRoute.success(institution, message="Institucion registrada correctamente.", status_code=201)

@institutions_bp.route('/<institution_id>', methods=['PUT'])
@APIRoute.standard(auth_required_flag=True, roles=[ROLES["ADMIN"]], schema=institution_schema)
def update_institution(institution_id):
    data = dict(request.get_json())
    data["id"] = institution_id
    institution = institution_service.save_institution(data, get_current_user())
    return APIRoute.success(institution, message="Institucion actualizada correctamente.")

@institutions_bp.route('/<institution_id>/estado', methods=['PUT'])
@APIRoute.standard(auth_required_flag=True, roles=[ROLES["ADMIN"]], required_fields=['estado'])
def set_institution_estado(institution_id):
    institution = institution_service.set_estado(institution_id, request.get_json()['estado'])
    return APIRoute.success(institution)

@institutions_bp.route('/<institution_id>', methods=['DELETE'])
@APIRoute.standard(auth_required_flag=True, roles=[ROLES["ADMIN"]])
def delete_institution(institution_id):
    """La eliminación es lógica: la institución queda inactiva."""
    institution_service.set_estado(institution_id, INSTITUTION_STATUS["INACTIVE"])
    return APIRoute.success(message="Institucion desactivada correctamente.")
