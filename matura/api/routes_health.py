from fastapi import APIRouter, Depends
from matura.api.deps import get_provider_registry, get_table_store
from matura.core.config import settings
from matura.providers.base import usage_meter
from matura.providers.registry import ProviderRegistry
from matura.store.table_store import TableStore

router = APIRouter()


@router.get("/health")
def health(
    registry: ProviderRegistry = Depends(get_provider_registry),
    store: TableStore = Depends(get_table_store),
):
    return {
        "status": "ok",
        "app": settings.app_name,
        "env": settings.app_env,
        "providers": registry.status(),
        "usage": usage_meter.snapshot(),
        "tables": store.table_names(),
    }
