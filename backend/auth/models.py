from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    username: str = Field(default="", max_length=100)
    email: str = Field(default="", max_length=254)
    password: str = ""


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


class AdminAccessRequest(BaseModel):
    code: str = ""


class CheckRegistrationRequest(BaseModel):
    email: str = ""
    ipAddress: str = ""


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    isAdmin: bool = False
