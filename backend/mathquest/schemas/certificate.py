from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator


class CertificateRequestCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=25)
    score: StrictInt = Field(..., ge=0)

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, v):
        # Stripped before the length check so whitespace-only names are rejected
        return v.strip() if isinstance(v, str) else v


class CertificateRequestCreateResponse(BaseModel):
    success: bool
    request_id: int


class CertificateRequestRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    score: int
    status: str
    requested_at: datetime


class CertificateIssueResponse(BaseModel):
    request_id: int
    username: str
    score: int
    image_url: str


class DeleteResponse(BaseModel):
    success: bool
