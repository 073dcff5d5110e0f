from pydantic import BaseModel, EmailStr

class UserLoginSchema(BaseModel):
    """Schema for user login request"""
    email: EmailStr
    password: str

class UserResponseSchema(BaseModel):
    """Schema for user response"""
    id: int
    email: EmailStr
    is_admin: bool = False

    class Config:
        from_attributes = True

class UserCreateSchema(BaseModel):
    email: EmailStr
    password: str

    class Config:
        from_attributes = True

class TokenSchema(BaseModel):
    """Schema for JWT token response"""
    access_token: str
    token_type: str
