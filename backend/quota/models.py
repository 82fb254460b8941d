from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


# Credential models
class Credential(BaseModel):
    """OAuth credential supplied by the caller; refreshed in place."""

    model_config = ConfigDict(validate_assignment=True)

    access_token: Optional[str] = None
    refresh_token: str = Field(min_length=1)
    timestamp: Optional[int] = Field(default=None, description="Issued-at, ms epoch")
    expires_in: Optional[int] = Field(default=None, description="Lifetime in seconds")


# Quota models
class ModelQuota(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    remaining: int = 0
    reset_time: str = Field(alias="resetTime")
    reset_time_raw: Optional[str] = Field(default=None, alias="resetTimeRaw")


class QuotaResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    last_updated: int = Field(alias="lastUpdated")
    models: Dict[str, ModelQuota] = {}


class HealthResponse(BaseModel):
    status: str
