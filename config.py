"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


REQUIRED_SETTINGS = ('DATABASE_URL', 'BACKEND_API_KEY')


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '0') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')

    # Session Configuration (Production-safe defaults)
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 86400  # 24 hours

    # Error tracking (production only)
    SENTRY_DSN = os.getenv('SENTRY_DSN')

    # Backend locator and its public key. Both are required at startup.
    DATABASE_URL = os.getenv('DATABASE_URL')
    BACKEND_API_KEY = os.getenv('BACKEND_API_KEY')

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Multi-tenancy
    # auto: detect from the backend schema, on/off: force
    MULTI_TENANT_MODE = os.getenv('MULTI_TENANT_MODE', 'auto').lower()
    BRAND_DOMAIN = os.getenv('BRAND_DOMAIN', 'example.com')

    # Impersonation (support mode)
    IMPERSONATION_WINDOW_MINUTES = int(os.getenv('IMPERSONATION_WINDOW_MINUTES', '30'))

    # Audit fingerprinting
    IP_LOOKUP_ENABLED = os.getenv('IP_LOOKUP_ENABLED', 'false').lower() == 'true'
    IP_LOOKUP_URL = os.getenv('IP_LOOKUP_URL', 'https://api.ipify.org?format=json')
    IP_LOOKUP_TIMEOUT = float(os.getenv('IP_LOOKUP_TIMEOUT', '3'))

    # Identity collaborator (staff account management)
    IDENTITY_SERVICE_URL = os.getenv('IDENTITY_SERVICE_URL', '')
    IDENTITY_SERVICE_TIMEOUT = float(os.getenv('IDENTITY_SERVICE_TIMEOUT', '10'))

    # Support contact defaults (used when platform settings cannot be read)
    SUPPORT_EMAIL = os.getenv('SUPPORT_EMAIL', 'support@example.com')

    # Redis Cache Configuration
    # Session-scoped tenant configuration lives here
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    TENANT_CONFIG_TTL = int(os.getenv('TENANT_CONFIG_TTL', str(PERMANENT_SESSION_LIFETIME)))
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'academy')

    # Background subscription alert scan
    SUBSCRIPTION_ALERT_INTERVAL = int(os.getenv('SUBSCRIPTION_ALERT_INTERVAL', '300'))


def missing_settings(config) -> list:
    """Return the names of required settings that are absent or empty."""
    return [name for name in REQUIRED_SETTINGS if not config.get(name)]
