"""Settings, provider and service dependency providers."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from offramp.core.config import Settings
from offramp.core.container import get_container
from offramp.modules.orders.service import OrderService
from offramp.modules.providers.registry import ProviderRegistry

from .database import get_session_factory


def get_app_settings() -> Settings:
    return get_container().settings


def get_provider_registry() -> ProviderRegistry:
    return get_container().providers


def get_order_service(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    providers: ProviderRegistry = Depends(get_provider_registry),
    settings: Settings = Depends(get_app_settings),
) -> OrderService:
    return OrderService(session_factory=factory, providers=providers, settings=settings)


__all__ = ["get_app_settings", "get_order_service", "get_provider_registry"]
