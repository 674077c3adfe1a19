from flask import request, current_app

from monitoreo.shared.standardization import APIBlueprint, APIRoute
from monitoreo.shared.constants import ROLES
from monitoreo.shared.decorators import get_current_user, get_auth_user_id
from monitoreo.shared.limiter import limiter, AUTH_LIMIT, RECOVERY_LIMIT
from monitoreo.shared.validators import profile_self_schema, profile_update_schema
from .services import ProfileService

profiles_bp = APIBlueprint('profiles', __name__)
profile_service = ProfileService()

@profiles_bp.route('/login', methods=['POST'])
@limiter.limit(AUTH_LIMIT)
@APIRoute.standard(required_fields=['email', 'password'])
def login():
    """Inicio de sesión con correo y contraseña; devuelve el token JWT."""
    data = request.get_json()
    result = profile_service.login(data['email'], data['password'])
    return APIRoute.success(result, message="Inicio de sesión exitoso.")

@profiles_bp.route('/lookup-email', methods=['POST'])
@limiter.limit(AUTH_LIMIT)
@APIRoute.standard(required_fields=['doc_number'])
def lookup_email():
    """
    Resuelve el correo asociado a un documento (DNI/CE) para iniciar sesión
    con el número de documento. Devuelve `email: null` si no hay un perfil
    activo con ese documento.
    """
    data = request.get_json()
    email = profile_service.lookup_email(data.get('doc_type', ''), data['doc_number'])
    return APIRoute.success({"email": email})

@profiles_bp.route('/me', methods=['GET'])
@APIRoute.standard(auth_required_flag=True)
def get_my_profile():
    return APIRoute.success(profile_service.get_profile(get_auth_user_id()))

@profiles_bp.route('/me', methods=['PUT'])
@APIRoute.standard(auth_required_flag=True, schema=profile_self_schema)
def update_my_profile():
    profile = profile_service.update_own_profile(get_auth_user_id(), request.get_json())
    return APIRoute.success(profile, message="Perfil actualizado correctamente.")

@profiles_bp.route('/specialists', methods=['GET'])
@APIRoute.standard(auth_required_flag=True)
def list_specialists():
    return APIRoute.success(profile_service.list_specialists())

@profiles_bp.route('/', methods=['GET'])
@APIRoute.standard(auth_required_flag=True, roles=[ROLES["ADMIN"]])
def list_profiles():
    profiles = profile_service.list_profiles(
        get_current_user(),
        search=request.args.get('search'),
        role=request.args.get('role', 'all'),
        status=request.args.get('status', 'all')
    )
    return APIRoute.success(profiles)

@profiles_bp.route('/', methods=['POST'])
@APIRoute.standard(auth_required_flag=True, roles=[ROLES["ADMIN"]],
                   required_fields=['first_name', 'last_name', 'email', 'password'])
def create_profile():
    profile = profile_service.create_profile(request.get_json(), get_current_user())
    return APIRoute.success(profile, message="Usuario creado correctamente.", status_code=201)

@profiles_bp.route('/<profile_id>', methods=['PUT'])
@APIRoute.standard(auth_required_flag=True, roles=[ROLES["ADMIN"]], schema=profile_update_schema)
def update_profile(profile_id):
    profile = profile_service.update_profile(profile_id, request.get_json(), get_current_user())
    return APIRoute.success(profile, message="Usuario actualizado correctamente.")

@profiles_bp.route('/<profile_id>/role', methods=['PUT'])
@APIRoute.standard(auth_required_flag=True, roles=[ROLES["ADMIN"]], required_fields=['role'])
def set_profile_role(profile_id):
    return APIRoute.success(profile_service.set_role(profile_id, request.get_json()['role'], get_current_user()))

@profiles_bp.route('/<profile_id>/status', methods=['PUT'])
@APIRoute.standard(auth_required_flag=True, roles=[ROLES["ADMIN"]], required_fields=['status'])
def set_profile_status(profile_id):
    return APIRoute.success(profile_service.set_status(profile_id, request.get_json()['status'], get_current_user()))

@profiles_bp.route('/admin-recovery/status', methods=['GET'])
@limiter.limit(AUTH_LIMIT)
@APIRoute.standard()
def admin_recovery_status():
    return APIRoute.success(profile_service.admin_access_status())

@profiles_bp.route('/admin-recovery', methods=['POST'])
@limiter.limit(RECOVERY_LIMIT)
@APIRoute.standard(required_fields=['email', 'password', 'code'])
def admin_recovery():
    """
    Recupera el acceso de administrador con el código ADMIN_RECOVERY_CODE.
    Solo funciona si ningún administrador activo puede iniciar sesión.
    """
    data = request.get_json()
    result = profile_service.recover_admin(
        data['email'], data['password'], data['code'], current_app.config.get('ADMIN_RECOVERY_CODE')
    )
    return APIRoute.success(result, message="Acceso de administrador restablecido.")
