"""
Configuration Factory - Centralized configuration management for Tic-Tac-Toe Online
Provides type-safe configuration with validation and environment-specific settings.
"""

import os
import logging
from typing import Any, Dict, List, Optional, Type
from enum import Enum
from dataclasses import dataclass, field


class Environment(Enum):
    """Environment types for configuration"""
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TESTING = "testing"


class ConfigError(Exception):
    """Configuration-related errors"""
    pass


REALTIME_TRANSPORTS = ('loopback', 'socketio')
DEFAULT_SECRET_KEY = 'dev-secret-key-change-in-production'


@dataclass
class AppConfig:
    """Application configuration with type safety and validation"""

    # Core Flask settings
    secret_key: str = field(default_factory=lambda: DEFAULT_SECRET_KEY)
    debug: bool = False
    flask_env: str = 'development'  # Default to development for safety

    # Server settings
    host: str = '0.0.0.0'
    port: int = 5000
    socketio_cors_allowed_origins: str = ''

    # Token broker settings
    pubsub_connection_string: str = ''  # may be empty; negotiate then answers 500
    pubsub_hub: str = 'tictactoe'
    token_ttl_minutes: int = 60
    room_code_length: int = 4

    # Client settings
    negotiate_url: str = 'http://localhost:5000/negotiate'
    realtime_transport: str = 'socketio'
    max_reconnect_attempts: int = 5
    reconnect_base_delay_ms: int = 1000
    reconnect_max_delay_ms: int = 30000
    connect_timeout: float = 10.0  # seconds
    broker_timeout: float = 10.0  # seconds
    identity_file: str = '.tictactoe_identity.json'

    # Gunicorn settings (for production deployment)
    worker_connections: int = 1000
    timeout: int = 30
    keepalive: int = 2
    log_level: str = 'info'

    # Environment
    environment: Environment = Environment.DEVELOPMENT

    def __post_init__(self):
        """Validate configuration after initialization"""
        self._validate()

    def _validate(self):
        """Validate configuration values"""
        if self.port < 1 or self.port > 65535:
            raise ConfigError(f"Invalid port number: {self.port}")

        if not self.pubsub_hub:
            raise ConfigError("pubsub_hub must not be empty")

        if self.token_ttl_minutes < 1 or self.token_ttl_minutes > 24 * 60:
            raise ConfigError(f"Invalid token_ttl_minutes: {self.token_ttl_minutes}")

        if self.room_code_length < 3 or self.room_code_length > 12:
            raise ConfigError(f"Invalid room_code_length: {self.room_code_length}")

        if self.realtime_transport not in REALTIME_TRANSPORTS:
            raise ConfigError(
                f"Invalid realtime_transport: {self.realtime_transport} (expected one of {', '.join(REALTIME_TRANSPORTS)})"
            )

        # Reconnect validations
        if self.max_reconnect_attempts < 0 or self.max_reconnect_attempts > 100:
            raise ConfigError(f"Invalid max_reconnect_attempts: {self.max_reconnect_attempts}")

        if self.reconnect_base_delay_ms < 1:
            raise ConfigError(f"Invalid reconnect_base_delay_ms: {self.reconnect_base_delay_ms}")

        if self.reconnect_max_delay_ms < self.reconnect_base_delay_ms:
            raise ConfigError(f"Invalid reconnect_max_delay_ms: {self.reconnect_max_delay_ms}")

        if self.connect_timeout <= 0 or self.broker_timeout <= 0:
            raise ConfigError("connect_timeout and broker_timeout must be positive")

        if self.environment == Environment.PRODUCTION and self.secret_key == DEFAULT_SECRET_KEY:
            raise ConfigError("Production environment requires a secure SECRET_KEY")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode"""
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode"""
        return self.environment == Environment.TESTING

    @property
    def allowed_origins(self) -> List[str]:
        """Socket.IO CORS allowlist parsed from the comma-separated setting"""
        return [o.strip() for o in self.socketio_cors_allowed_origins.split(',') if o.strip()]


class ConfigurationFactory:
    """
    Factory for creating and managing application configuration.

    Features:
    - Environment variable loading with type conversion
    - Configuration validation
    - Environment-specific defaults
    - Singleton pattern for global config access
    """

    _instance: Optional['ConfigurationFactory'] = None
    _config: Optional[AppConfig] = None

    def __new__(cls) -> 'ConfigurationFactory':
        """Singleton pattern implementation"""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize the configuration factory"""
        if not hasattr(self, '_initialized'):
            self._logger = logging.getLogger(__name__)
            self._env_overrides: Dict[str, Any] = {}
            self._initialized = True

    def load_from_environment(self, env_prefix: str = '') -> AppConfig:
        """
        Load configuration from environment variables.

        Args:
            env_prefix: Optional prefix for environment variables (e.g., 'TICTACTOE_')

        Returns:
            Configured AppConfig instance
        """
        def get_env_var(key: str, default: Any = None, var_type: Type = str) -> Any:
            """Get environment variable with type conversion"""
            env_key = f"{env_prefix}{key}" if env_prefix else key
            value = os.environ.get(env_key)

            if value is None:
                return default

            # Type conversion
            if var_type == bool:
                return value.lower() in ('true', '1', 'yes', 'on')
            elif var_type == int:
                try:
                    return int(value)
                except ValueError:
                    self._logger.warning(f"Invalid integer value for {env_key}: {value}, using default: {default}")
                    return default
            elif var_type == float:
                try:
                    return float(value)
                except ValueError:
                    self._logger.warning(f"Invalid float value for {env_key}: {value}, using default: {default}")
                    return default
            else:
                return value

        # Determine environment
        flask_env = get_env_var('FLASK_ENV', 'development')  # Default to development for safety
        if flask_env == 'development':
            environment = Environment.DEVELOPMENT
            debug = True
        elif flask_env == 'testing':
            environment = Environment.TESTING
            debug = True
        else:
            environment = Environment.PRODUCTION
            debug = False

        config = AppConfig(
            # Core Flask settings
            secret_key=get_env_var('SECRET_KEY', DEFAULT_SECRET_KEY),
            debug=get_env_var('DEBUG', debug, bool),
            flask_env=flask_env,

            # Server settings
            host=get_env_var('HOST', '0.0.0.0'),
            port=get_env_var('PORT', 5000, int),
            socketio_cors_allowed_origins=get_env_var('SOCKETIO_CORS_ALLOWED_ORIGINS', ''),

            # Token broker settings
            pubsub_connection_string=get_env_var('PUBSUB_CONNECTION_STRING', ''),
            pubsub_hub=get_env_var('PUBSUB_HUB', 'tictactoe'),
            token_ttl_minutes=get_env_var('TOKEN_TTL_MINUTES', 60, int),
            room_code_length=get_env_var('ROOM_CODE_LENGTH', 4, int),

            # Client settings
            negotiate_url=get_env_var('NEGOTIATE_URL', 'http://localhost:5000/negotiate'),
            realtime_transport=get_env_var('REALTIME_TRANSPORT', 'socketio').lower(),
            max_reconnect_attempts=get_env_var('MAX_RECONNECT_ATTEMPTS', 5, int),
            reconnect_base_delay_ms=get_env_var('RECONNECT_BASE_DELAY_MS', 1000, int),
            reconnect_max_delay_ms=get_env_var('RECONNECT_MAX_DELAY_MS', 30000, int),
            connect_timeout=get_env_var('CONNECT_TIMEOUT', 10.0, float),
            broker_timeout=get_env_var('BROKER_TIMEOUT', 10.0, float),
            identity_file=get_env_var('IDENTITY_FILE', '.tictactoe_identity.json'),

            # Gunicorn settings
            worker_connections=get_env_var('WORKER_CONNECTIONS', 1000, int),
            timeout=get_env_var('TIMEOUT', 30, int),
            keepalive=get_env_var('KEEPALIVE', 2, int),
            log_level=get_env_var('LOG_LEVEL', 'info'),

            # Environment
            environment=environment
        )

        # Apply any manual overrides
        for key, value in self._env_overrides.items():
            if hasattr(config, key):
                setattr(config, key, value)

        self._config = config
        self._logger.info(f"Configuration loaded for environment: {environment.value}")
        if not config.pubsub_connection_string:
            self._logger.warning("PUBSUB_CONNECTION_STRING is not set; /negotiate will answer 500")
        return config

    def load_from_dict(self, config_dict: Dict[str, Any]) -> AppConfig:
        """
        Load configuration from dictionary (useful for testing).

        Args:
            config_dict: Dictionary of configuration values

        Returns:
            Configured AppConfig instance
        """
        # Convert environment string to enum if provided
        if 'environment' in config_dict and isinstance(config_dict['environment'], str):
            config_dict['environment'] = Environment(config_dict['environment'])

        self._config = AppConfig(**config_dict)
        return self._config

    def override_setting(self, key: str, value: Any) -> 'ConfigurationFactory':
        """
        Override a specific configuration setting.

        Args:
            key: Configuration key to override
            value: New value for the setting

        Returns:
            Self for method chaining
        """
        self._env_overrides[key] = value

        # Update current config if loaded
        if self._config and hasattr(self._config, key):
            setattr(self._config, key, value)
            self._config._validate()  # Re-validate after change

        return self

    def get_config(self) -> AppConfig:
        """
        Get the current configuration.

        Returns:
            Current AppConfig instance

        Raises:
            ConfigError: If no configuration has been loaded
        """
        if self._config is None:
            raise ConfigError("Configuration not loaded. Call load_from_environment() or load_from_dict() first.")
        return self._config

    def reset(self) -> 'ConfigurationFactory':
        """Reset the factory (useful for testing)"""
        self._config = None
        self._env_overrides.clear()
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert current configuration to dictionary"""
        if self._config is None:
            raise ConfigError("Configuration not loaded")

        config_dict = {}
        for field_info in self._config.__dataclass_fields__.values():
            value = getattr(self._config, field_info.name)
            if isinstance(value, Environment):
                config_dict[field_info.name] = value.value
            else:
                config_dict[field_info.name] = value

        return config_dict

    def get_flask_config(self) -> Dict[str, Any]:
        """
        Get Flask-compatible configuration dictionary.

        Returns:
            Dictionary suitable for Flask app.config.update()
        """
        if self._config is None:
            raise ConfigError("Configuration not loaded")

        return {
            'SECRET_KEY': self._config.secret_key,
            'DEBUG': self._config.debug,
            'ENV': self._config.flask_env,
            'PUBSUB_HUB': self._config.pubsub_hub,
            'TOKEN_TTL_MINUTES': self._config.token_ttl_minutes,
            'ROOM_CODE_LENGTH': self._config.room_code_length,
        }


# Global factory instance
_config_factory = ConfigurationFactory()


def get_config() -> AppConfig:
    """Get the global application configuration"""
    return _config_factory.get_config()


def load_config(env_prefix: str = '') -> AppConfig:
    """Load configuration from environment variables"""
    return _config_factory.load_from_environment(env_prefix)


def load_config_from_dict(config_dict: Dict[str, Any]) -> AppConfig:
    """Load configuration from dictionary"""
    return _config_factory.load_from_dict(config_dict)


def override_config(key: str, value: Any) -> ConfigurationFactory:
    """Override a configuration setting"""
    return _config_factory.override_setting(key, value)


def reset_config() -> ConfigurationFactory:
    """Reset configuration (for testing)"""
    return _config_factory.reset()
