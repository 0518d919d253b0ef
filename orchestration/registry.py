"""Service registry - service name to adapter, plus integration metadata."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from core.application.interfaces import IServiceAdapter
from core.domain.exceptions import NotFoundError, ValidationError
from pinkflow_sdk.logging import get_logger
from pinkflow_sdk.utils.datetime import to_iso, utc_now


@dataclass
class IntegrationInfo:
    """What the integration hub shows for one registered service."""

    id: str
    name: str
    type: str
    status: str = "connected"
    configuration: dict[str, Any] = field(default_factory=dict)
    connected_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "status": self.status,
            "configuration": self.configuration,
            "connectedAt": to_iso(self.connected_at),
        }


class ServiceRegistry:
    """Open mapping from service name to adapter.

    Steps name their service; the executor resolves it here.
    """

    def __init__(self) -> None:
        self._adapters: dict[str, IServiceAdapter] = {}
        self._integrations: dict[str, IntegrationInfo] = {}
        self._logger = get_logger("orchestration.registry")

    def register(
        self,
        name: str,
        adapter: IServiceAdapter,
        display_name: str | None = None,
        integration_type: str = "internal",
        configuration: dict[str, Any] | None = None,
    ) -> None:
        if not name:
            raise ValidationError("Service name is required")
        self._adapters[name] = adapter
        self._integrations[name] = IntegrationInfo(
            id=name,
            name=display_name or name,
            type=integration_type,
            configuration={**adapter.describe(), **(configuration or {})},
            connected_at=utc_now(),
        )
        self._logger.info("service_registered", service=name, integration_type=integration_type)

    def unregister(self, name: str) -> bool:
        removed = self._adapters.pop(name, None) is not None
        self._integrations.pop(name, None)
        return removed

    def resolve(self, name: str) -> IServiceAdapter:
        """Adapter registered under ``name``.

        Raises:
            NotFoundError: If no adapter is registered
        """
        try:
            return self._adapters[name]
        except KeyError:
            raise NotFoundError(f"Unknown service: {name}", details={"service": name}) from None

    def __contains__(self, name: object) -> bool:
        return name in self._adapters

    @property
    def names(self) -> list[str]:
        return sorted(self._adapters)

    def describe(self) -> list[IntegrationInfo]:
        return [self._integrations[name] for name in self.names]

    def connect(self, name: str, configuration: dict[str, Any] | None = None) -> IntegrationInfo:
        """Mark a registered integration connected and merge configuration.

        Raises:
            NotFoundError: If the integration is unknown
        """
        info = self._integrations.get(name)
        if info is None:
            raise NotFoundError(f"Unknown integration: {name}", details={"integrationId": name})
        if configuration:
            info.configuration.update(configuration)
        info.status = "connected"
        info.connected_at = utc_now()
        self._logger.info("integration_connected", integration=name)
        return info

