from flask import request

from monitoreo.shared.standardization import APIBlueprint, APIRoute, ErrorCodes
from monitoreo.shared.decorators import get_current_user
from .services import InstanceService

instances_bp = APIBlueprint('instances', __name__)
instance_service = InstanceService()

@instances_bp.route('/', methods=['GET'])
@APIRoute.standard(auth_required_flag=True)
def list_instances():
    instances = instance_service.list_instances(get_current_user(), request.args.get('template_id'))
    return APIRoute.success(instances)

@instances_bp.route('/start', methods=['POST'])
@APIRoute.standard(auth_required_flag=True, required_fields=['template_id'])
def start_instance():
    """
    Retoma la ficha en progreso del especialista para la plantilla indicada,
    o crea una nueva si no existe.
    """
    instance = instance_service.get_or_create_in_progress(request.get_json()['template_id'], get_current_user())
    return APIRoute.success(instance)

@instances_bp.route('/<instance_id>', methods=['GET'])
@APIRoute.standard(auth_required_flag=True)
def get_instance(instance_id):
    return APIRoute.success(instance_service.get_instance(instance_id, get_current_user()))

@instances_bp.route('/<instance_id>', methods=['PUT'])
@APIRoute.standard(auth_required_flag=True, required_fields=['data'])
def save_instance(instance_id):
    instance = instance_service.save_instance(instance_id, request.get_json()['data'], get_current_user())
    return APIRoute.success(instance, message="Ficha guardada")

@instances_bp.route('/<instance_id>/complete', methods=['POST'])
@APIRoute.standard(auth_required_flag=True)
def complete_instance(instance_id):
    instance = instance_service.complete_instance(instance_id, get_current_user())
    return APIRoute.success(instance, message="Ficha completada")

@instances_bp.route('/<instance_id>', methods=['DELETE'])
@APIRoute.standard(auth_required_flag=True)
def delete_instance(instance_id):
    if not instance_service.delete_instance(instance_id, get_current_user()):
        return APIRoute.error(ErrorCodes.RESOURCE_NOT_FOUND, "Ficha no encontrada", status_code=404)
    return APIRoute.success(message="Ficha eliminada")
