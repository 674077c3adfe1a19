from functools import wraps
from flask import request, jsonify, current_app
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity, get_jwt
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from monitoreo.shared.database import get_db
from monitoreo.shared.constants import ROLES, COLLECTIONS, PROFILE_STATUS
from monitoreo.shared.exceptions import AppException
import logging

def handle_errors(f):
    """Decorador para manejar excepciones en las rutas"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except AppException as e:
            response = {
                "success": False,
                "error": e.__class__.__name__,
                "message": str(e.message)
            }
            if hasattr(e, 'details') and e.details:
                response["details"] = e.details
            return jsonify(response), e.code
        except Exception as e:
            current_app.logger.exception(f"Error inesperado: {str(e)}")
            return jsonify({
                "success": False,
                "error": "ERROR_SERVIDOR",
                "message": "Error interno del servidor"
            }), 500
    return decorated_function

def _auth_error(message, status_code=401):
    return jsonify({
        "success": False,
        "error": "ERROR_AUTENTICACION",
        "message": message
    }), status_code

def auth_required(f):
    """
    Decorador para requerir autenticación mediante JWT.

    Además del token se verifica el perfil en base de datos: un perfil
    suspendido pierde el acceso aunque su token siga vigente.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        logger = logging.getLogger(__name__)

        try:
            verify_jwt_in_request()
            user_id = get_jwt_identity()
            profile = get_db()[COLLECTIONS["PROFILES"]].find_one({"_id": user_id})
        except (JWTExtendedException, PyJWTError) as e:
            logger.warning(f"Auth_required: Token inválido: {str(e)}")
            return _auth_error("Error de autenticación")

        if not profile:
            logger.warning(f"Auth_required: Perfil con ID {user_id} no encontrado en la base de datos")
            return _auth_error("Usuario no encontrado")

        if profile.get("status", PROFILE_STATUS["ACTIVE"]) != PROFILE_STATUS["ACTIVE"]:
            logger.info(f"Auth_required: Perfil {user_id} con estado {profile.get('status')}")
            return _auth_error("Tu cuenta no está activa", 403)

        claims = get_jwt()
        request.user_id = user_id
        request.user_role = profile.get("role") or claims.get("role") or ROLES["USER"]
        request.user_email = profile.get("email") or claims.get("email")
        request.is_admin = request.user_role == ROLES["ADMIN"]

        logger.debug(f"Auth_required: Usuario autenticado con ID: {user_id}, Rol: {request.user_role}")
        return f(*args, **kwargs)
    return decorated_function

def role_required(required_roles):
    """
    Decorador para verificar que el usuario tiene al menos uno de los roles requeridos.
    Debe usarse después de auth_required.

    Args:
        required_roles: Puede ser un string con el nombre del rol o una lista de roles.
                       También acepta las claves del diccionario ROLES.
    """
    if isinstance(required_roles, str):
        required_roles = [required_roles]

    normalized_roles = [ROLES.get(role, role).lower() for role in required_roles]

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(request, 'user_id'):
                return _auth_error("Se requiere autenticación")

            user_role = (getattr(request, 'user_role', None) or "").lower()
            if user_role in normalized_roles:
                return f(*args, **kwargs)

            return jsonify({
                "success": False,
                "error": "ERROR_PERMISO",
                "message": "No tiene los permisos necesarios"
            }), 403

        return decorated_function
    return decorator

def validate_json(required_fields=None, schema=None):
    """Decorador para validar JSON en las solicitudes"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not request.is_json:
                return jsonify({
                    "success": False,
                    "error": "ERROR_FORMATO",
                    "message": "Se esperaba contenido JSON"
                }), 400

            data = request.get_json(silent=True)
            if not isinstance(data, dict):
                return jsonify({
                    "success": False,
                    "error": "ERROR_FORMATO",
                    "message": "El cuerpo debe ser un objeto JSON"
                }), 400

            if required_fields:
                missing_fields = [field for field in required_fields if field not in data]
                if missing_fields:
                    return jsonify({
                        "success": False,
                        "error": "CAMPOS_FALTANTES",
                        "message": f"Faltan campos requeridos: {', '.join(missing_fields)}"
                    }), 400

            if schema:
                from monitoreo.shared.validators import validate_schema
                is_valid, errors = validate_schema(data, schema)
                if not is_valid:
                    return jsonify({
                        "success": False,
                        "error": "DATOS_INVALIDOS",
                        "message": "Datos inválidos",
                        "details": errors
                    }), 400

            return f(*args, **kwargs)
        return decorated_function
    return decorator

def get_auth_user_id():
    """Obtiene el ID del usuario autenticado"""
    return getattr(request, 'user_id', None)

def is_admin_request() -> bool:
    return bool(getattr(request, 'is_admin', False))

def get_current_user() -> dict:
    """Datos del usuario autenticado en la forma que reciben los servicios."""
    return {
        "id": getattr(request, 'user_id', None),
        "role": getattr(request, 'user_role', None),
        "email": getattr(request, 'user_email', None),
        "is_admin": is_admin_request()
    }
