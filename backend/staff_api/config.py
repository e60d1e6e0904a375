"""Environment configuration for the staff service.

Values come from the process environment; a ``.env`` file next to the
backend directory is loaded first if present.
"""
import os
from dotenv import load_dotenv

load_dotenv(os.path.join(os.path.dirname(__file__), '..', '.env'))

SERVICE_NAME = 'staff-service'

PORT = int(os.environ.get('PORT', '3007'))

# Directory holding the Staff / Schedule collection files
DATA_DIR = os.path.normpath(os.environ.get('STAFF_DATA_DIR', os.path.join(os.getcwd(), 'data')))

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'info').upper()
# Optional rotating log file in addition to stderr
LOG_FILE = os.environ.get('LOG_FILE', '')

# CORS origins from env
_raw_origins = os.environ.get('ALLOWED_ORIGINS', '')
ALLOWED_ORIGINS = (
    [o.strip() for o in _raw_origins.split(',') if o.strip()]
    or ['http://localhost:3000', 'http://localhost:5173']
)

# slowapi limit applied to write endpoints
WRITE_RATE_LIMIT = os.environ.get('RATE_LIMIT', '200/minute')
RATE_LIMIT_ENABLED = os.environ.get('RATE_LIMIT_ENABLED', 'true').lower() in ('1', 'true', 'yes')
