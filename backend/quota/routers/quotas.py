from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from ..errors import FetchError
from ..models import Credential, HealthResponse, QuotaResponse
from ..services.quota_manager import QuotaManager

router = APIRouter(prefix="/api", tags=["quotas"])


def get_manager(request: Request) -> QuotaManager:
    return request.app.state.quota_manager


@router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok")


@router.post("/quotas/{credential_id}", response_model=QuotaResponse)
async def get_quotas(
    credential_id: str,
    payload: Credential,
    manager: QuotaManager = Depends(get_manager),
) -> QuotaResponse:
    try:
        return await manager.get_quotas(credential_id, payload)
    except FetchError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))
