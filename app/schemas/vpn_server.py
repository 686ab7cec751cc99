from typing import Optional

from pydantic import BaseModel


class VpnServerCreate(BaseModel):
    country: Optional[str] = None
    location: Optional[str] = None
    ip: Optional[str] = None
    port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = None


class VpnServerResponse(BaseModel):
    id: int
    country: str
    location: str
    ip: Optional[str] = None
    port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = None

    class Config:
        from_attributes = True
