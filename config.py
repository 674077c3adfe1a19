import os
import sys
import logging
from dotenv import load_dotenv

load_dotenv()

# Configurar logger
logger = logging.getLogger(__name__)

# Variables de entorno requeridas para producción
REQUIRED_ENV_VARS = ['MONGO_DB_URI', 'DB_NAME', 'JWT_SECRET']

def validate_env_vars():
    """
    Valida que las variables de entorno requeridas estén configuradas.
    En producción, la aplicación no debería iniciarse si faltan variables críticas.
    """
    # Solo validar en producción
    if os.getenv('FLASK_ENV') != 'production':
        return True

    missing_vars = [var for var in REQUIRED_ENV_VARS if not os.getenv(var)]
    if missing_vars:
        logger.error(f"Faltan variables de entorno requeridas: {', '.join(missing_vars)}")
        return False
    return True

class Config:
    """Configuración base para la aplicación"""
    # Base de datos
    MONGO_DB_URI = os.getenv('MONGO_DB_URI')
    DB_NAME = os.getenv('DB_NAME')

    # JWT (Autenticación)
    JWT_SECRET_KEY = os.getenv('JWT_SECRET', 'develop-secret-key')
    JWT_TOKEN_LOCATION = ["headers"]
    JWT_HEADER_NAME = "Authorization"
    JWT_HEADER_TYPE = "Bearer"
    JWT_ACCESS_TOKEN_EXPIRES = int(os.getenv('JWT_EXPIRATION_HOURS', 12)) * 3600  # En segundos
    # Tolerancia (segundos) por diferencias de reloj entre servidores
    JWT_DECODE_LEEWAY = int(os.getenv('JWT_DECODE_LEEWAY', 10))

    # Servidor
    DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'
    PORT = int(os.getenv('PORT', 5000))

    # CORS
    # Formato de CORS_ORIGINS: "http://ejemplo1.com,http://ejemplo2.com"
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', 'http://localhost:5173').split(',')

    # Logging
    # Valores posibles: 'none', 'basic', 'detailed'
    API_LOGGING = os.getenv('API_LOGGING', 'basic')

    # Zona horaria de los días de calendario
    APP_TIMEZONE = os.getenv('APP_TIMEZONE', 'America/Lima')

    # Asistente (API compatible con chat completions)
    CHAT_API_URL = os.getenv('CHAT_API_URL', 'https://api.groq.com/openai/v1/chat/completions')
    CHAT_API_KEY = os.getenv('CHAT_API_KEY')
    CHAT_MODEL = os.getenv('CHAT_MODEL', 'llama-3.1-8b-instant')
    CHAT_TIMEOUT = int(os.getenv('CHAT_TIMEOUT', 30))

    # Código para recuperar el acceso de administrador
    ADMIN_RECOVERY_CODE = os.getenv('ADMIN_RECOVERY_CODE')

    # Límites de solicitudes (flask-limiter)
    RATELIMIT_ENABLED = os.getenv('RATELIMIT_ENABLED', '1') == '1'
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')

    @classmethod
    def validate(cls):
        """Valida que la configuración sea correcta"""
        if cls.MONGO_DB_URI is None:
            logger.warning("MONGO_DB_URI no está configurado. La conexión a la base de datos puede fallar.")
        if cls.DB_NAME is None:
            logger.warning("DB_NAME no está configurado. La conexión a la base de datos puede fallar.")
        if cls.JWT_SECRET_KEY == 'develop-secret-key':
            logger.warning("JWT_SECRET tiene el valor por defecto. Esto es inseguro en producción.")
        if not cls.CHAT_API_KEY:
            logger.warning("CHAT_API_KEY no está configurado. El chat libre del asistente no responderá.")


class DevelopmentConfig(Config):
    """Configuración para entorno de desarrollo"""
    DEBUG = True


class ProductionConfig(Config):
    """Configuración para entorno de producción"""
    DEBUG = False

    @classmethod
    def validate(cls):
        super().validate()
        if cls.ADMIN_RECOVERY_CODE and len(cls.ADMIN_RECOVERY_CODE) < 12:
            logger.warning("ADMIN_RECOVERY_CODE es demasiado corto; usa al menos 12 caracteres.")
        if any('localhost' in origin for origin in cls.CORS_ORIGINS):
            logger.warning("CORS_ORIGINS incluye localhost en producción.")
        if not validate_env_vars():
            logger.critical("Faltan variables de entorno críticas en entorno de producción")
            # En producción, fallar si faltan variables críticas
            if os.getenv('ENFORCE_ENV_VALIDATION', '0') == '1':
                sys.exit(1)


class TestingConfig(Config):
    """Configuración para entorno de pruebas"""
    TESTING = True
    DEBUG = True
    DB_NAME = os.getenv('TEST_DB_NAME', 'monitoreo_test')
    JWT_SECRET_KEY = 'test-secret-key-with-enough-length-for-hs256'
    API_LOGGING = 'none'
    RATELIMIT_ENABLED = False
    CHAT_API_KEY = 'test-chat-key'


# Diccionario para seleccionar la configuración según el entorno
config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}

# Obtener la configuración activa
env = os.getenv('FLASK_ENV', 'development')
active_config = config_by_name.get(env, DevelopmentConfig)

# Validar configuración
active_config.validate()
