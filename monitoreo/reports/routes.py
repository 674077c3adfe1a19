from flask import request

from monitoreo.shared.standardization import APIBlueprint, APIRoute, ErrorCodes
from monitoreo.shared.decorators import get_current_user
from .services import ReportService

reports_bp = APIBlueprint('reports', __name__)
report_service = ReportService()

@reports_bp.route('/', methods=['GET'])
@APIRoute.standard(auth_required_flag=True)
def get_reports():
    """
    Reporte de fichas: resumen por estado, filas y grupos por plantilla.

    Parámetros de consulta:
        state: all | active | in_progress | completed | expired | draft
        search: texto a buscar en título de plantilla o docente
        sort: recent | name | due
    """
    report = report_service.get_report(
        get_current_user(),
        state=request.args.get('state', 'all'),
        search=request.args.get('search', ''),
        sort_by=request.args.get('sort', 'recent')
    )
    return APIRoute.success(report)

@reports_bp.route('/<instance_id>', methods=['GET'])
@APIRoute.standard(auth_required_flag=True)
def get_report_detail(instance_id):
    detail = report_service.get_report_detail(instance_id, get_current_user())
    if not detail:
        return APIRoute.error(ErrorCodes.RESOURCE_NOT_FOUND, "Reporte no encontrado", status_code=404)
    return APIRoute.success(detail)
