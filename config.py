"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    TESTING = False

    # Session Configuration (guest session id lives in the signed cookie)
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 7 * 86400

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'solar')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'solar')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'solar')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'
    # Applied as Postgres statement_timeout; 0 disables it
    DB_STATEMENT_TIMEOUT_MS = int(os.getenv('DB_STATEMENT_TIMEOUT_MS', '15000'))

    # Redis Cache Configuration
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'solar')

    # Guest sessions
    GUEST_SESSION_DAYS = int(os.getenv('GUEST_SESSION_DAYS', '7'))

    # Profile rows are written by the auth provider asynchronously after signup
    PROFILE_WAIT_ATTEMPTS = int(os.getenv('PROFILE_WAIT_ATTEMPTS', '5'))
    PROFILE_WAIT_DELAY = float(os.getenv('PROFILE_WAIT_DELAY', '0.5'))

    # Pricing
    WHOLESALE_ROLE = os.getenv('WHOLESALE_ROLE', 'b2b')
    DEFAULT_ROLE = os.getenv('DEFAULT_ROLE', 'b2c')
    ADMIN_ROLE = os.getenv('ADMIN_ROLE', 'admin')

    # Currency
    DEFAULT_USD_RATE = os.getenv('DEFAULT_USD_RATE', '35.00')
    USD_RATE_CACHE_TTL = int(os.getenv('USD_RATE_CACHE_TTL', '3600'))
    USD_RATE_CHANNEL = os.getenv('USD_RATE_CHANNEL', 'settings:usd_rate')
    DISPLAY_CURRENCY_LABEL = os.getenv('DISPLAY_CURRENCY_LABEL', 'TL')
    SETTLEMENT_CURRENCY = os.getenv('SETTLEMENT_CURRENCY', 'TRY')

    # Orders
    ORDER_NO_PREFIX = os.getenv('ORDER_NO_PREFIX', 'ORB')

    # Auth provider (access tokens are HS256 JWTs signed with the project secret)
    AUTH_JWT_SECRET = os.getenv('AUTH_JWT_SECRET', 'dev-jwt-secret')
    AUTH_JWT_AUDIENCE = os.getenv('AUTH_JWT_AUDIENCE', 'authenticated')

    # Email configuration
    MAIL_SERVER = os.getenv('SMTP_HOST', 'smtp.gmail.com')
    MAIL_PORT = int(os.getenv('SMTP_PORT', 587))
    MAIL_USE_TLS = True
    MAIL_USE_SSL = False
    MAIL_USERNAME = os.getenv('SMTP_USER') or ''
    MAIL_PASSWORD = os.getenv('SMTP_PASSWORD') or ''
    MAIL_DEFAULT_SENDER = (
        os.getenv('SMTP_FROM')
        or MAIL_USERNAME
        or 'no-reply@localhost'
    )
    MAIL_SUPPRESS_SEND = os.getenv('MAIL_SUPPRESS_SEND', 'false').lower() == 'true'
    ADMIN_NOTIFY_EMAILS = [
        e.strip() for e in os.getenv('ADMIN_NOTIFY_EMAILS', '').split(',') if e.strip()
    ]
    STORE_NAME = os.getenv('STORE_NAME', 'Solar Market')
    STORE_ADMIN_URL = os.getenv('STORE_ADMIN_URL', 'http://localhost:5000/admin/orders')
    NOTIFY_ASYNC = os.getenv('NOTIFY_ASYNC', 'true').lower() == 'true'
    NOTIFY_WORKERS = int(os.getenv('NOTIFY_WORKERS', '2'))


class TestConfig(Config):
    """Configuration used by the test suite (SQLite, no Redis, inline notifications)."""

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv('TEST_DATABASE_URL', 'sqlite:///test_storefront.db')
    SQLALCHEMY_ECHO = False
    DB_STATEMENT_TIMEOUT_MS = 0
    CACHE_ENABLED = False
    PROFILE_WAIT_ATTEMPTS = 2
    PROFILE_WAIT_DELAY = 0
    MAIL_SUPPRESS_SEND = True
    NOTIFY_ASYNC = False
    AUTH_JWT_SECRET = 'test-jwt-secret-with-enough-length-for-hs256'
