"""
Service Container - Dependency Injection Container for the token broker and relay.
Manages service creation, dependencies, and lifecycle.
"""

from typing import Dict, Any, List, Optional, Callable
from enum import Enum


class ServiceLifecycle(Enum):
    """Service lifecycle management options"""
    SINGLETON = "singleton"  # One instance per container
    TRANSIENT = "transient"  # New instance every time


class ServiceDefinition:
    """Definition of how a service should be created"""

    def __init__(
        self,
        name: str,
        factory: Callable,
        dependencies: List[str] = None,
        lifecycle: ServiceLifecycle = ServiceLifecycle.SINGLETON,
    ):
        self.name = name
        self.factory = factory
        self.dependencies = dependencies or []
        self.lifecycle = lifecycle


class CircularDependencyError(Exception):
    """Raised when circular dependency is detected"""
    pass


class ServiceNotFoundError(Exception):
    """Raised when requested service is not registered"""
    pass


class ServiceContainer:
    """
    Dependency Injection Container for broker-side services.

    Features:
    - Explicit dependency resolution by service name
    - Circular dependency detection
    - Singleton and transient lifecycle management
    - Shared configuration for factory functions
    """

    def __init__(self):
        self._services: Dict[str, ServiceDefinition] = {}
        self._instances: Dict[str, Any] = {}
        self._creating: List[str] = []  # Services being created, in order (circular detection)
        self._config: Dict[str, Any] = {}

    def register(
        self,
        name: str,
        factory: Callable,
        dependencies: List[str] = None,
        lifecycle: ServiceLifecycle = ServiceLifecycle.SINGLETON,
    ) -> 'ServiceContainer':
        """
        Register a service with the container.

        Args:
            name: Service name for retrieval
            factory: Class or function to create the service
            dependencies: Service names passed positionally to the factory
            lifecycle: How the service instance should be managed

        Returns:
            Self for method chaining
        """
        if name in self._services:
            raise ValueError(f"Service '{name}' is already registered")

        if not callable(factory):
            raise ValueError(f"Factory for '{name}' must be callable")

        self._services[name] = ServiceDefinition(
            name=name,
            factory=factory,
            dependencies=dependencies,
            lifecycle=lifecycle,
        )
        return self

    def configure_services(self) -> 'ServiceContainer':
        """Register the token broker and relay services."""
        from tictactoe.handlers.relay_sessions import RelaySessionService

        # Token broker - built from the shared configuration
        self.register('NegotiateService', self._build_negotiate_service)

        # Relay sessions - verify tokens through the negotiate service
        self.register('RelaySessionService', RelaySessionService, dependencies=['NegotiateService'])

        return self

    def _build_negotiate_service(self):
        from tictactoe.broker.negotiate_service import DEFAULT_HUB_NAME, NegotiateService
        from tictactoe.broker.token_issuer import DEFAULT_TOKEN_TTL_MINUTES
        from tictactoe.game.room_codes import DEFAULT_ROOM_CODE_LENGTH

        return NegotiateService(
            connection_string=self._config.get('pubsub_connection_string', ''),
            hub_name=self._config.get('pubsub_hub', DEFAULT_HUB_NAME),
            token_ttl_minutes=self._config.get('token_ttl_minutes', DEFAULT_TOKEN_TTL_MINUTES),
            room_code_length=self._config.get('room_code_length', DEFAULT_ROOM_CODE_LENGTH),
        )

    def set_external_dependency(self, name: str, instance: Any) -> 'ServiceContainer':
        """
        Set an external dependency that's created outside the container.
        Useful for Flask-SocketIO and similar framework objects.
        """
        self._instances[name] = instance
        return self

    def set_config(self, config: Dict[str, Any]) -> 'ServiceContainer':
        """Set global configuration for the container"""
        self._config.update(config)
        return self

    def get(self, name: str) -> Any:
        """
        Get a service instance, creating it if necessary.

        Raises:
            ServiceNotFoundError: If service is not registered
            CircularDependencyError: If circular dependency detected
        """
        if name in self._instances:
            return self._instances[name]

        if name not in self._services:
            raise ServiceNotFoundError(f"Service '{name}' is not registered")

        return self._create_service(name)

    def _create_service(self, name: str) -> Any:
        if name in self._creating:
            cycle = ' -> '.join(self._creating + [name])
            raise CircularDependencyError(f"Circular dependency detected: {cycle}")

        self._creating.append(name)
        try:
            service_def = self._services[name]
            dependencies = [self.get(dep_name) for dep_name in service_def.dependencies]
            instance = service_def.factory(*dependencies)

            if service_def.lifecycle == ServiceLifecycle.SINGLETON:
                self._instances[name] = instance
            return instance
        finally:
            self._creating.remove(name)

    def clear(self) -> 'ServiceContainer':
        """Forget every registration, instance and config entry."""
        self._services.clear()
        self._instances.clear()
        self._creating.clear()
        self._config.clear()
        return self


# Global container instance for the application
_app_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """Get the global application service container"""
    global _app_container
    if _app_container is None:
        _app_container = ServiceContainer()
    return _app_container


def reset_container() -> None:
    """Drop the global container (for testing)"""
    global _app_container
    _app_container = None


def configure_container(socketio=None, config=None) -> ServiceContainer:
    """
    Configure the global service container.

    Args:
        socketio: Flask-SocketIO instance
        config: Application configuration dictionary

    Returns:
        Configured service container
    """
    container = get_container()
    container.clear()  # Clear any existing configuration

    if socketio is not None:
        container.set_external_dependency('socketio', socketio)

    if config is not None:
        container.set_config(config)

    container.configure_services()

    return container
