import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


def _env_list(name: str) -> list[str]:
    raw = os.getenv(name, '')
    return [item.strip().lower() for item in raw.split(',') if item.strip()]


class Config:
    # Provide a safe development fallback to avoid 500s when SECRET_KEY is missing.
    SECRET_KEY = os.getenv('SECRET_KEY') or 'dev-secret-key-change-me'
    DATABASE_URL = os.getenv('DATABASE_URL')
    SQLALCHEMY_DATABASE_URI = DATABASE_URL or 'sqlite:///eventdesk.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    WTF_CSRF_TIME_LIMIT = None
    # Enforced for cookie-authenticated writes in create_app
    WTF_CSRF_CHECK_DEFAULT = False
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    BASE_URL = os.getenv('BASE_URL', 'http://localhost:5000').rstrip('/')

    # Identity tokens
    AUTH_TOKEN_MAX_AGE = int(os.getenv('AUTH_TOKEN_MAX_AGE', 3600))
    AUTH_COOKIE_NAME = os.getenv('AUTH_COOKIE_NAME', 'auth-token')
    AUTH_COOKIE_SECURE = _env_flag('AUTH_COOKIE_SECURE', 'true')

    # Administrator seed lists, copied into the administrator table at startup
    SUPER_ADMIN_EMAILS = _env_list('SUPER_ADMIN_EMAILS')
    ADMIN_EMAILS = _env_list('ADMIN_EMAILS')
    SEED_ADMINS_ON_STARTUP = _env_flag('SEED_ADMINS_ON_STARTUP', 'true')

    # Trash retention and the scheduled purge trigger
    CRON_SECRET = os.getenv('CRON_SECRET')
    TRASH_RETENTION_DAYS = int(os.getenv('TRASH_RETENTION_DAYS', 30))

    # Payments
    INVOICE_PREFIX = os.getenv('INVOICE_PREFIX', 'EVT')
    PAYMENT_CURRENCY = os.getenv('PAYMENT_CURRENCY', 'BDT')
    PAYMENT_CALLBACK_URL = os.getenv('PAYMENT_CALLBACK_URL')
    PAYMENT_TIMEOUT = float(os.getenv('PAYMENT_TIMEOUT', 30))
    BKASH_USERNAME = os.getenv('BKASH_USERNAME')
    BKASH_PASSWORD = os.getenv('BKASH_PASSWORD')
    BKASH_APP_KEY = os.getenv('BKASH_APP_KEY')
    BKASH_APP_SECRET = os.getenv('BKASH_APP_SECRET')
    BKASH_GRANT_TOKEN_URL = os.getenv(
        'BKASH_GRANT_TOKEN_URL',
        'https://tokenized.sandbox.bka.sh/v1.2.0-beta/tokenized/checkout/token/grant',
    )
    BKASH_CREATE_PAYMENT_URL = os.getenv(
        'BKASH_CREATE_PAYMENT_URL',
        'https://tokenized.sandbox.bka.sh/v1.2.0-beta/tokenized/checkout/create',
    )
    BKASH_EXECUTE_PAYMENT_URL = os.getenv(
        'BKASH_EXECUTE_PAYMENT_URL',
        'https://tokenized.sandbox.bka.sh/v1.2.0-beta/tokenized/checkout/execute',
    )

    # Email delivery: console (log only), brevo or smtp
    EMAIL_BACKEND = os.getenv('EMAIL_BACKEND', 'console').lower()
    BREVO_API_KEY = os.getenv('BREVO_API_KEY')
    BREVO_API_URL = os.getenv('BREVO_API_URL', 'https://api.brevo.com/v3/smtp/email')
    FROM_EMAIL = os.getenv('FROM_EMAIL', 'no-reply@eventdesk.local')
    FROM_NAME = os.getenv('FROM_NAME', 'EventDesk')
    SMTP_HOST = os.getenv('SMTP_HOST')
    SMTP_PORT = int(os.getenv('SMTP_PORT', 587))
    SMTP_USERNAME = os.getenv('SMTP_USERNAME')
    SMTP_PASSWORD = os.getenv('SMTP_PASSWORD')
    SMTP_USE_TLS = _env_flag('SMTP_USE_TLS', 'true')
    EMAIL_TIMEOUT = float(os.getenv('EMAIL_TIMEOUT', 15))

    # Background jobs
    REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

    # Cached read views (schools, admin dashboard, public events)
    CACHE_TYPE = os.getenv('CACHE_TYPE', 'SimpleCache')
    CACHE_DEFAULT_TIMEOUT = int(os.getenv('CACHE_DEFAULT_TIMEOUT', 60))
    CACHE_REDIS_URL = os.getenv('CACHE_REDIS_URL', REDIS_URL)

    RATELIMIT_ENABLED = _env_flag('RATELIMIT_ENABLED', 'true')
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')
