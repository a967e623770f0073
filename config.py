# partnerbot/config.py
"""
Configuration management for the partner progression bot.
Loads from .env, validates critical keys.
"""
import os
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List
from dotenv import load_dotenv

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Configuration error exception."""
    pass


class Config:
    """
    Configuration manager with static and dynamic values.

    Usage:
        # Load from .env
        Config.initialize_from_env()

        # Get value
        token = Config.get(Config.API_TOKEN)

        # Set dynamic value
        Config.set(Config.SYSTEM_READY, True)
    """

    # ═══════════════════════════════════════════════════════════════════════
    # CONFIGURATION KEYS
    # ═══════════════════════════════════════════════════════════════════════

    # Telegram Bot (admin surface)
    API_TOKEN = "API_TOKEN"
    ADMIN_USER_IDS = "ADMIN_USER_IDS"

    # Database
    DATABASE_URL = "DATABASE_URL"

    # Notification sink
    NOTIFICATION_WEBHOOK_URL = "NOTIFICATION_WEBHOOK_URL"
    NOTIFICATION_TIMEOUT = "NOTIFICATION_TIMEOUT"

    # Progression
    RANK_LADDER_PATH = "RANK_LADDER_PATH"
    PRO_SUBSCRIPTION_RATE = "PRO_SUBSCRIPTION_RATE"

    # System
    SYSTEM_READY = "SYSTEM_READY"
    BOT_USERNAME = "BOT_USERNAME"

    # ═══════════════════════════════════════════════════════════════════════
    # CRITICAL KEYS (must be present)
    # ═══════════════════════════════════════════════════════════════════════

    CRITICAL_KEYS = [
        API_TOKEN,
        DATABASE_URL,
    ]

    # ═══════════════════════════════════════════════════════════════════════
    # STORAGE
    # ═══════════════════════════════════════════════════════════════════════

    _config: Dict[str, Any] = {}
    _initialized: bool = False

    # ═══════════════════════════════════════════════════════════════════════
    # METHODS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def initialize_from_env(cls) -> None:
        """
        Load configuration from .env file.

        Raises:
            ConfigurationError: If a value cannot be parsed
        """
        load_dotenv()

        logger.info("Loading configuration from environment...")

        try:
            # Telegram
            cls._config[cls.API_TOKEN] = os.getenv("API_TOKEN")

            admin_ids_str = os.getenv("ADMIN_USER_IDS", "")
            if admin_ids_str:
                cls._config[cls.ADMIN_USER_IDS] = [
                    int(x.strip()) for x in admin_ids_str.split(',') if x.strip()
                ]
            else:
                cls._config[cls.ADMIN_USER_IDS] = []

            # Database
            cls._config[cls.DATABASE_URL] = os.getenv(
                "DATABASE_URL",
                "sqlite:///partners.db"
            )

            # Notifications
            cls._config[cls.NOTIFICATION_WEBHOOK_URL] = os.getenv("NOTIFICATION_WEBHOOK_URL")
            cls._config[cls.NOTIFICATION_TIMEOUT] = int(os.getenv("NOTIFICATION_TIMEOUT", "10"))

            # Progression
            cls._config[cls.RANK_LADDER_PATH] = os.getenv("RANK_LADDER_PATH")
            cls._config[cls.PRO_SUBSCRIPTION_RATE] = Decimal(
                os.getenv("PRO_SUBSCRIPTION_RATE", "45")
            )

            # System
            cls._config[cls.SYSTEM_READY] = False
            cls._config[cls.BOT_USERNAME] = None

            cls._initialized = True
            logger.info("Configuration loaded from environment successfully")

        except (ValueError, InvalidOperation) as e:
            logger.error(f"Failed to load configuration: {e}")
            raise ConfigurationError(f"Configuration loading failed: {e}")

    @classmethod
    async def validate_critical_keys(cls) -> None:
        """
        Validate that all critical configuration keys are present.

        Raises:
            ConfigurationError: If any critical key is missing
        """
        missing = []
        for key in cls.CRITICAL_KEYS:
            if not cls.get(key):
                missing.append(key)

        if missing:
            error_msg = f"Missing critical configuration keys: {', '.join(missing)}"
            logger.critical(error_msg)
            raise ConfigurationError(error_msg)

        logger.info("All critical configuration keys validated ✓")

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """
        Get configuration value.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        return cls._config.get(key, default)

    @classmethod
    def set(cls, key: str, value: Any, source: str = "runtime") -> None:
        """
        Set configuration value (for dynamic updates).

        Args:
            key: Configuration key
            value: New value
            source: Source of the update (for logging)
        """
        cls._config[key] = value
        logger.debug(f"Config updated: {key} = {value} (source: {source})")

    @classmethod
    def get_all(cls) -> Dict[str, Any]:
        """
        Get all configuration values.

        Returns:
            Copy of configuration dictionary
        """
        return cls._config.copy()

    @classmethod
    def get_admin_ids(cls) -> List[int]:
        return cls.get(cls.ADMIN_USER_IDS, []) or []

    @classmethod
    def is_admin(cls, user_id: int) -> bool:
        """
        Check if user is admin.

        Args:
            user_id: Telegram user ID

        Returns:
            True if user is admin
        """
        return user_id in cls.get_admin_ids()
