from pydantic import BaseModel


class AdminLogin(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    message: str
    subscribed: bool
    access_token: str
    token_type: str = "bearer"
