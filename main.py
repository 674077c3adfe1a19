import logging
import os
import sys

from flask import Flask, jsonify
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from pymongo.errors import PyMongoError
from werkzeug.exceptions import HTTPException

from config import active_config, validate_env_vars
from monitoreo.shared.constants import APP_PREFIX, APP_NAME
from monitoreo.shared.database import get_db, setup_database_indexes
from monitoreo.shared.exceptions import AppException
from monitoreo.shared.limiter import limiter
from monitoreo.shared.logging import configure_logging, log_api_call

configure_logging(active_config.DEBUG)
logger = logging.getLogger(__name__)

# Verificar variables de entorno críticas
if not validate_env_vars():
    logger.critical("Faltan variables de entorno críticas. Por favor, configure el archivo .env")
    if os.getenv('ENFORCE_ENV_VALIDATION', '0') == '1':
        sys.exit(1)
    else:
        logger.warning("Continuando a pesar de la falta de variables de entorno. Esto puede causar errores.")

# Importar Blueprints
from monitoreo.templates.routes import templates_bp
from monitoreo.instances.routes import instances_bp
from monitoreo.reports.routes import reports_bp
from monitoreo.events.routes import events_bp, calendar_bp
from monitoreo.institutions.routes import institutions_bp
from monitoreo.profiles.routes import profiles_bp
from monitoreo.assistant.routes import assistant_bp


def create_app(config_object=active_config):
    """
    Crea y configura la aplicación Flask
    """
    app = Flask(APP_NAME)

    # Aplicar configuración
    app.config.from_object(config_object)

    # Configurar CORS
    CORS(app, resources={
        r"/api/*": {
            "origins": app.config["CORS_ORIGINS"],
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"],
            "supports_credentials": True,
            "automatic_options": True
        }
    })

    # Desactivar modo estricto para slashes en URLs
    app.url_map.strict_slashes = False

    # Inicializar JWT y límites de solicitudes
    JWTManager(app)
    limiter.init_app(app)

    # Registro de las llamadas a la API (API_LOGGING: none, basic o detailed)
    @app.after_request
    def log_response(response):
        return log_api_call(response, app.config.get('API_LOGGING', 'basic'))

    # Verificar conexión a la base de datos (las pruebas usan una base simulada)
    if not app.config.get('TESTING'):
        try:
            get_db()
            logger.info("Conexión a MongoDB establecida")

            # Configurar índices si estamos en modo de desarrollo o la variable de entorno lo indica
            if app.config['DEBUG'] or os.getenv('SETUP_INDEXES', '0') == '1':
                logger.info("Configurando índices de la base de datos...")
                if setup_database_indexes():
                    logger.info("Índices configurados correctamente")
                else:
                    logger.warning("No se pudieron configurar todos los índices")
        except (PyMongoError, ValueError) as e:
            logger.error(f"Error al conectar a MongoDB: {str(e)}")
            logger.warning("La aplicación se está ejecutando sin conexión a la base de datos. Las operaciones pueden fallar.")

    # Registrar manejo de errores global
    @app.errorhandler(500)
    def handle_server_error(error):
        logger.error(f"Error del servidor: {error}")
        return jsonify({
            "success": False,
            "error": "ERROR_SERVIDOR",
            "message": "Error interno del servidor"
        }), 500

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify({
            "success": False,
            "error": "NOT_FOUND",
            "message": "Recurso no encontrado"
        }), 404

    @app.errorhandler(429)
    def handle_rate_limit(error):
        return jsonify({
            "success": False,
            "error": "LIMITE_EXCEDIDO",
            "message": "Demasiadas solicitudes. Intenta nuevamente en unos minutos."
        }), 429

    # Excepciones no manejadas por handle_errors
    @app.errorhandler(Exception)
    def handle_unhandled_exception(error):
        if isinstance(error, AppException):
            response = {
                "success": False,
                "error": error.__class__.__name__,
                "message": str(error.message)
            }
            if error.details:
                response["details"] = error.details
            return jsonify(response), error.code

        if isinstance(error, HTTPException):
            return jsonify({
                "success": False,
                "error": error.name,
                "message": error.description
            }), error.code

        logger.exception(f"Error no controlado: {error}")
        return jsonify({
            "success": False,
            "error": "ERROR_SERVIDOR",
            "message": "Error interno del servidor"
        }), 500

    # Registrar Blueprints
    app.register_blueprint(templates_bp, url_prefix=f'{APP_PREFIX}/templates')
    app.register_blueprint(instances_bp, url_prefix=f'{APP_PREFIX}/instances')
    app.register_blueprint(reports_bp, url_prefix=f'{APP_PREFIX}/reports')
    app.register_blueprint(events_bp, url_prefix=f'{APP_PREFIX}/events')
    app.register_blueprint(calendar_bp, url_prefix=f'{APP_PREFIX}/calendar')
    app.register_blueprint(institutions_bp, url_prefix=f'{APP_PREFIX}/institutions')
    app.register_blueprint(profiles_bp, url_prefix=f'{APP_PREFIX}/profiles')
    app.register_blueprint(assistant_bp, url_prefix=f'{APP_PREFIX}/assistant')

    @app.route('/')
    def health_check():
        """Endpoint para verificar la salud de la aplicación"""
        return jsonify({
            "status": "healthy",
            "version": "1.0.0",
            "env": os.getenv('FLASK_ENV', 'development')
        })

    return app

app = create_app()

if __name__ == '__main__':
    # Cuando se ejecuta directamente (desarrollo local)
    logger.info(f"Iniciando aplicación en modo {os.getenv('FLASK_ENV', 'development')}")
    app.run(
        debug=app.config['DEBUG'],
        host='0.0.0.0',
        port=app.config['PORT']
    )
