"""
Schémas Pydantic pour les utilisateurs d'un CFA.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.models.enums import UserRole


class UserBase(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    company_name: Optional[str] = Field(None, max_length=255)
    tutor_name: Optional[str] = Field(None, max_length=255)


class UserCreate(UserBase):
    email: EmailStr
    role: UserRole
    password: Optional[str] = Field(None, min_length=6)
    custom_role_id: Optional[int] = None
    external_id: Optional[str] = Field(None, max_length=100)


class UserUpdate(UserBase):
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    password: Optional[str] = Field(None, min_length=6)
    custom_role_id: Optional[int] = None
    external_id: Optional[str] = Field(None, max_length=100)
    is_active: Optional[bool] = None


class ProfileUpdate(UserBase):
    """Champs modifiables par l'utilisateur sur son propre profil."""
    pass


class UserResponse(UserBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: Optional[int] = None
    email: str
    full_name: Optional[str] = None
    role: UserRole
    custom_role_id: Optional[int] = None
    external_id: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None
    last_activity_at: Optional[datetime] = None
    created_at: datetime


class UserListResponse(BaseModel):
    items: List[UserResponse]
    total: int
    page: int
    size: int
    pages: int
