from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class StartTrialRequest(BaseModel):
    device_id: str = Field(..., alias="deviceId", min_length=1)
    email: str = Field(..., min_length=3)

    class Config:
        populate_by_name = True


class TrialResponse(BaseModel):
    message: str
    trial_active: bool = Field(..., alias="trialActive")
    expires_in: int = Field(..., alias="expiresIn")  # seconds until the trial ends

    class Config:
        populate_by_name = True


class TrialServerRequest(BaseModel):
    device_id: Optional[str] = Field(None, alias="deviceId")

    class Config:
        populate_by_name = True


class TrialServerInfo(BaseModel):
    ip: str
    username: str
    password: str
    location: Optional[str] = None
    tags: List[str] = []
    expires: datetime


class TrialServerResponse(BaseModel):
    server: TrialServerInfo


class TrialServerCreate(BaseModel):
    ip: str
    username: str
    password: str
    location: Optional[str] = None
    tags: List[str] = []
    capacity: int = Field(10, ge=1)


class TrialServerAdminView(BaseModel):
    id: int
    ip: str
    location: Optional[str] = None
    tags: List[str] = []
    capacity: int
    current_users: int = Field(..., alias="currentUsers")
    created_at: datetime = Field(..., alias="createdAt")

    class Config:
        from_attributes = True
        populate_by_name = True
