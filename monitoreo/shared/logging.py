import logging
from flask import current_app, has_app_context, request

DEFAULT_LOGGER_NAME = "monitoreo"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Campos que nunca se escriben en el log detallado
REDACTED_FIELDS = {"password", "code", "token", "access_token"}
REDACTED_VALUE = "***"

def configure_logging(debug: bool = False):
    """Formato y nivel del logging de la aplicación (DEBUG en desarrollo)."""
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO, format=LOG_FORMAT)

def get_logger(name: str = None) -> logging.Logger:
    """
    Obtiene un logger para el módulo indicado.
    Dentro de un contexto de Flask se usa el logger de la aplicación para que
    los mensajes salgan con el mismo formato que el logging de la API.

    Args:
        name: Nombre del módulo o servicio que solicita el logger

    Returns:
        logging.Logger: Logger configurado
    """
    if has_app_context():
        return current_app.logger
    return logging.getLogger(name or DEFAULT_LOGGER_NAME)

def redact(data):
    """Copia de un cuerpo JSON con contraseñas, códigos y tokens ocultos."""
    if isinstance(data, dict):
        return {
            key: REDACTED_VALUE if key in REDACTED_FIELDS else redact(value)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [redact(item) for item in data]
    return data

def log_api_call(response, level: str = "basic"):
    """
    Registra una llamada a la API según API_LOGGING.

    Args:
        response: Respuesta de Flask que se está devolviendo
        level: 'none', 'basic' (método, ruta y estado) o 'detailed'
            (agrega parámetros y cuerpos, sin campos sensibles)
    """
    if level == "none":
        return response

    logger = get_logger()
    method, path, status = request.method, request.path, response.status_code
    if level == "basic":
        logger.info(f"API: {method} {path} - Status: {status}")
        return response

    logger.info(f"API REQUEST: {method} {path}")
    if request.args:
        logger.info(f"URL Query Params: {dict(request.args)}")
    if method in ("POST", "PUT", "PATCH") and request.is_json:
        request_data = request.get_json(silent=True)
        if request_data:
            logger.info(f"Request Data: {redact(request_data)}")

    logger.info(f"API RESPONSE: {method} {path} - Status: {status}")
    if response.is_json:
        response_data = response.get_json(silent=True)
        if response_data:
            logger.info(f"Response Data: {redact(response_data)}")
    return response

def log_error(message: str, error: Exception = None, module: str = None):
    """
    Registra un error, incluyendo la excepción original cuando existe.

    Args:
        message: Mensaje descriptivo del error
        error: Excepción que causó el error (opcional)
        module: Nombre del módulo donde ocurrió el error (opcional)
    """
    logger = get_logger(module)
    if error:
        logger.error(f"{message}: {str(error)}")
    else:
        logger.error(message)

def log_info(message: str, module: str = None):
    get_logger(module).info(message)

def log_warning(message: str, module: str = None):
    get_logger(module).warning(message)

def log_debug(message: str, module: str = None):
    get_logger(module).debug(message)
