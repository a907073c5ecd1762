"""
Certification schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CertificationVerifyRequest(BaseModel):
    credential_id: Optional[str] = None


class CertificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    level: int
    score: int
    credential_id: str
    issuing_organization: str
    certified_at: datetime
    expiration_date: Optional[datetime] = None
