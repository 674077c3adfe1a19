"""
Excepciones personalizadas para la aplicación.

Estas excepciones son capturadas por el decorador handle_errors en decorators.py
y por el manejador global registrado en main.create_app, que las convierten en
respuestas JSON con el código HTTP indicado.

Ejemplos de uso:
    raise AppException("Plantilla no encontrada", AppException.NOT_FOUND)

    raise AppException(
        "Revisa los campos obligatorios",
        AppException.BAD_REQUEST,
        {"cod_local": "El codigo local debe ser numerico."}
    )
"""

class AppException(Exception):
    """
    Excepción base para errores de la aplicación.

    Permite especificar un código HTTP personalizado y detalles por campo.
    """

    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    INTERNAL_ERROR = 500
    BAD_GATEWAY = 502

    def __init__(self, message: str, code: int = BAD_REQUEST, details: dict = None):
        self.message = message
        self.code = code
        self.details = details
        super().__init__(self.message)


class ValidationException(AppException):
    """Error de validación con el detalle de cada campo inválido."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, AppException.BAD_REQUEST, details)


class PermissionException(AppException):
    """El usuario autenticado no puede operar sobre el recurso."""

    def __init__(self, message: str = "No tienes permisos para acceder."):
        super().__init__(message, AppException.FORBIDDEN)


class ExternalServiceException(AppException):
    """Falla de un servicio externo (por ejemplo, el proveedor de chat)."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, AppException.BAD_GATEWAY, details)
