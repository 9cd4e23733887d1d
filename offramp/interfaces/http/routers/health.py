"""Liveness endpoint."""

from fastapi import APIRouter, Depends

from offramp import __version__
from offramp.interfaces.http.deps import get_provider_registry
from offramp.modules.providers import ProviderRegistry
from offramp.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(providers: ProviderRegistry = Depends(get_provider_registry)):
    return HealthResponse(version=__version__, providers=providers.names())
