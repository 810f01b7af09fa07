"""
Configuration management for the Oud loyalty engine.
"""
import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()


class BaseConfig:
    """Base configuration."""
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Program identity (returned by GET ?action=tiers)
    LOYALTY_PROGRAM_NAME = 'Oud Premium Loyalty'
    LOYALTY_PROGRAM_NAME_ARABIC = 'برنامج ولاء العود المميز'
    LOYALTY_CURRENCY = 'AED'

    # Earning and redemption rates
    LOYALTY_POINTS_PER_AED = 10           # 10 points per 1 AED, before tier multiplier
    LOYALTY_REDEMPTION_RATE = Decimal('0.1')  # 1 point = 0.1 AED
    LOYALTY_PREMIUM_CATEGORIES = ('Premium Oud', 'Luxury Perfumes')
    LOYALTY_POINTS_EXPIRY_DAYS = 365
    LOYALTY_REFERRAL_BONUS = 500

    # History endpoint paging
    LOYALTY_HISTORY_DEFAULT_LIMIT = 50
    LOYALTY_HISTORY_MAX_LIMIT = 200


class DevelopmentConfig(BaseConfig):
    """Development configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///oud_loyalty_dev.db'  # SQLite fallback for local dev
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
            ConfigurationError: If SECRET_KEY is missing, too short or looks like a placeholder
        """
        from .utils.exceptions import ConfigurationError

        if not cls._secret_key:
            raise ConfigurationError(
                "SECRET_KEY environment variable is not set. "
                "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
            )

        insecure_patterns = ['dev', 'change', 'default', 'test', 'secret', 'password']
        lower_key = cls._secret_key.lower()
        for pattern in insecure_patterns:
            if pattern in lower_key:
                raise ConfigurationError(
                    f"SECRET_KEY contains '{pattern}' which suggests it's not secure."
                )

        if len(cls._secret_key) < 32:
            raise ConfigurationError(
                "SECRET_KEY is too short (minimum 32 characters required)."
            )

        return cls._secret_key

    SECRET_KEY = _secret_key  # Validated at app startup


class TestingConfig(BaseConfig):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'


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

    In production, this ensures SECRET_KEY is properly configured.

    Raises:
        ConfigurationError: If validation fails in production
    """
    if config_name == 'production':
        ProductionConfig.validate_secret_key()
