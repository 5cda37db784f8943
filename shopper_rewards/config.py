"""
Configuration management for the shopper rewards service.
"""
import os
from dotenv import load_dotenv

load_dotenv()


class BaseConfig:
    """Base configuration."""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Admin endpoints compare X-Admin-Key against this value
    ADMIN_API_KEY = os.getenv('ADMIN_API_KEY', '')

    # Public origin of this API, used for payment gateway callback URLs
    PUBLIC_API_URL = os.getenv('PUBLIC_API_URL', '')

    REDIS_URL = os.getenv('REDIS_URL', '')

    # Origins allowed to call /api/* (comma separated, * for any)
    CORS_ORIGINS = [o.strip() for o in os.getenv('CORS_ORIGINS', '*').split(',') if o.strip()]

    # QR code issuance
    QR_TOTAL_CODES = int(os.getenv('QR_TOTAL_CODES', '1680'))  # per campaign, split across variants
    QR_BATCH_SIZE = int(os.getenv('QR_BATCH_SIZE', '100'))  # rows per insert/commit

    # Serviceable area (approximate Nairobi metro bounding box, inclusive)
    GEOFENCE_BOUNDS = {
        'north': -1.1864,
        'south': -1.4564,
        'east': 37.0833,
        'west': 36.6667,
    }
    GEOFENCE_REGION = os.getenv('GEOFENCE_REGION', 'nairobi')

    # Safaricom M-Pesa B2C
    SAFARICOM_CONSUMER_KEY = os.getenv('SAFARICOM_CONSUMER_KEY', '')
    SAFARICOM_CONSUMER_SECRET = os.getenv('SAFARICOM_CONSUMER_SECRET', '')
    SAFARICOM_INITIATOR_NAME = os.getenv('SAFARICOM_INITIATOR_NAME', '')
    SAFARICOM_SECURITY_CREDENTIAL = os.getenv('SAFARICOM_SECURITY_CREDENTIAL', '')
    SAFARICOM_SHORT_CODE = os.getenv('SAFARICOM_SHORT_CODE', '')
    SAFARICOM_ENVIRONMENT = os.getenv('SAFARICOM_ENVIRONMENT', 'sandbox')  # sandbox, production
    SAFARICOM_COMMAND_ID = os.getenv('SAFARICOM_COMMAND_ID', 'BusinessPayment')
    SAFARICOM_TIMEOUT = int(os.getenv('SAFARICOM_TIMEOUT', '30'))  # seconds per HTTP call


class DevelopmentConfig(BaseConfig):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///shopper_rewards_dev.db'  # SQLite fallback for local dev
    )


class ProductionConfig(BaseConfig):
    """Production configuration."""
    DEBUG = False

    _db_url = os.getenv('DATABASE_URL', '')
    if _db_url.startswith('postgres://'):
        # SQLAlchemy requires postgresql:// not postgres://
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = _db_url

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 5,
        'pool_recycle': 300,
        'pool_pre_ping': True,  # Verify connections before using
    }

    _secret_key = os.getenv('SECRET_KEY', '')

    @classmethod
    def validate_secret_key(cls) -> str:
        """
        Validate SECRET_KEY in production environment.

        Raises:
            RuntimeError: If SECRET_KEY is missing, empty, or contains unsafe values
        """
        if not cls._secret_key:
            raise RuntimeError(
                "CRITICAL: SECRET_KEY environment variable is not set!\n"
                "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )

        insecure_patterns = ['dev', 'change', 'default', 'test', 'secret', 'password']
        lower_key = cls._secret_key.lower()
        for pattern in insecure_patterns:
            if pattern in lower_key:
                raise RuntimeError(
                    f"CRITICAL: SECRET_KEY contains '{pattern}' which suggests it's not secure!"
                )

        if len(cls._secret_key) < 32:
            raise RuntimeError("CRITICAL: SECRET_KEY is too short (minimum 32 characters required)!")

        return cls._secret_key

    SECRET_KEY = _secret_key  # Validated at app startup


class TestingConfig(BaseConfig):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    ADMIN_API_KEY = 'test-admin-key'
    PUBLIC_API_URL = 'https://rewards.example.com'
    QR_TOTAL_CODES = 1680
    QR_BATCH_SIZE = 100


config_map = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig
}


def get_config(config_name: str = 'development'):
    """Get configuration class by name."""
    return config_map.get(config_name, DevelopmentConfig)


def validate_config(config_name: str = 'development') -> None:
    """
    Validate configuration before app startup.

    Raises:
        RuntimeError: If validation fails in production
    """
    if config_name == 'production':
        ProductionConfig.validate_secret_key()
