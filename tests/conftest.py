import os

# La configuración se elige al importar config.py
os.environ.setdefault('FLASK_ENV', 'testing')
os.environ.setdefault('APP_TIMEZONE', 'America/Lima')
