from pydantic import BaseModel, EmailStr, Field
from typing import List, Optional

# ======================
# TOKEN SCHEMAS
# ======================

class Token(BaseModel):
    access_token: str
    token_type: str
    roles: List[str]

class TokenData(BaseModel):
    email: Optional[str] = None
    roles: List[str] = []


# ======================
# USER AUTHENTICATION SCHEMAS
# ======================

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    # Bcrypt limit is 72 bytes
    password: str = Field(..., min_length=6, max_length=72)
    # Any of MENTOR / MENTEE; a user may hold both.
    roles: List[str] = Field(default_factory=lambda: ["MENTEE"], min_length=1)
