import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Process env wins over .env
load_dotenv(override=False)

CORS_ORIGIN = os.getenv('CORS_ORIGIN', '')

DATABASE_URL = os.getenv('DATABASE_URL')
DATA_DIR = Path(os.getenv('DATA_DIR', Path(__file__).resolve().parents[1] / 'data'))

RESEND_API_KEY = os.getenv('RESEND_API_KEY', '')
RESEND_API_URL = os.getenv('RESEND_API_URL', 'https://api.resend.com/emails')
DEFAULT_FROM = os.getenv('DEFAULT_FROM', 'Receipt Generator <no-reply@receipts.com>')

OPENAI_API_KEY = os.getenv('OPENAI_API_KEY', '')
OPENAI_API_URL = os.getenv('OPENAI_API_URL', 'https://api.openai.com/v1/chat/completions')
OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o')

HTTP_TIMEOUT = float(os.getenv('HTTP_TIMEOUT', '30'))

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'

_logging_configured = False


def configure_logging() -> None:
    global _logging_configured
    if _logging_configured:
        return
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    _logging_configured = True
