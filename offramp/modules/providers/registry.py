"""Lookup of enabled provider adapters by name."""

from __future__ import annotations

from typing import Iterable

from offramp.core.config import Settings
from offramp.modules.common import ProviderName

from .base import ProviderAdapter
from .exceptions import ProviderNotConfiguredError
from .paycrest import PaycrestAdapter
from .pretium import PretiumAdapter


class ProviderRegistry:
    def __init__(self, adapters: Iterable[ProviderAdapter]) -> None:
        self._adapters = {adapter.name: adapter for adapter in adapters}

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderRegistry":
        adapters: list[ProviderAdapter] = []
        if settings.pretium.enabled:
            adapters.append(PretiumAdapter.from_settings(settings.pretium))
        if settings.paycrest.enabled:
            adapters.append(PaycrestAdapter.from_settings(settings.paycrest))
        return cls(adapters)

    def get(self, name: ProviderName | str) -> ProviderAdapter:
        try:
            key = ProviderName(name)
            return self._adapters[key]
        except (ValueError, KeyError) as exc:
            raise ProviderNotConfiguredError(f"provider not configured: {name}") from exc

    def names(self) -> list[ProviderName]:
        return list(self._adapters)

    async def aclose(self) -> None:
        for adapter in self._adapters.values():
            await adapter.aclose()
