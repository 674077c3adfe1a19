from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Límites de las rutas públicas y del asistente
AUTH_LIMIT = "10 per minute"
RECOVERY_LIMIT = "5 per minute"
CHAT_LIMIT = "20 per minute"
DATA_QUERY_LIMIT = "30 per minute"

# Clave por IP. El almacenamiento sale de RATELIMIT_STORAGE_URI y se apaga
# con RATELIMIT_ENABLED (las pruebas corren sin límites).
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1000 per day", "200 per hour"]
)
