"""Simple dependency container for wiring core services."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from offramp.core.config import Settings, get_settings
from offramp.infrastructure.database.session import get_engine
from offramp.modules.providers.registry import ProviderRegistry


@dataclass(slots=True)
class ApplicationContainer:
    settings: Settings
    providers: ProviderRegistry

    def init_infrastructure(self) -> None:
        """Ensure infrastructure singletons (database engine, etc.) are initialised."""
        get_engine()

    async def shutdown(self) -> None:
        await self.providers.aclose()


@lru_cache()
def get_container() -> ApplicationContainer:
    settings = get_settings()
    container = ApplicationContainer(settings=settings, providers=ProviderRegistry.from_settings(settings))
    container.init_infrastructure()
    return container


__all__ = ["ApplicationContainer", "get_container"]
