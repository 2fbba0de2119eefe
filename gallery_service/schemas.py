"""
Pydantic schemas for request/response validation
"""
from pydantic import BaseModel, Field, validator
from typing import Dict, List, Optional
from datetime import datetime

from .domain.models import MediaType


class UserRegister(BaseModel):
    """User registration request"""
    name: str = Field(..., max_length=100)
    email: str = Field(..., max_length=255)
    password: str
    remember: bool = False

    @validator('email')
    def normalize_email(cls, v):
        """Emails are case-insensitive"""
        return v.strip().lower()


class UserLogin(BaseModel):
    """User login request"""
    email: str
    password: str
    remember: bool = False


class UserResponse(BaseModel):
    """Public user profile"""
    id: str
    name: str
    email: str
    image: Optional[str] = None
    favorites: List[str] = []
    history: List[str] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SessionResponse(BaseModel):
    """Current session"""
    authenticated: bool
    remembered: bool = False
    user: Optional[UserResponse] = None


class UpdateProfile(BaseModel):
    """Update profile request"""
    name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    password: Optional[str] = None


class ProfileImageUpdate(BaseModel):
    """Profile picture as a base64 data URI"""
    image: str

    @validator('image')
    def validate_image(cls, v):
        """Validate data URI prefix"""
        if not v.startswith('data:image/'):
            raise ValueError('Image must be a data:image/... URI')
        return v


class MediaCreate(BaseModel):
    """Media upload by URL or image data URI"""
    url: str
    type: str
    category: str = Field("", max_length=100)
    title: Optional[str] = Field(None, max_length=255)
    thumbnail: Optional[str] = None


class MediaUpdate(BaseModel):
    """Update media request"""
    title: Optional[str] = Field(None, max_length=255)
    url: Optional[str] = None
    type: Optional[MediaType] = None
    category: Optional[str] = Field(None, max_length=100)
    thumbnail: Optional[str] = None


class MediaResponse(BaseModel):
    """Media item"""
    id: str
    title: str
    url: str
    type: MediaType
    category: str
    user_id: str
    thumbnail: Optional[str] = None
    user_name: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MediaListResponse(BaseModel):
    """Media list response"""
    items: List[MediaResponse]
    total: int


class CommentCreate(BaseModel):
    """Comment create request"""
    text: str = Field(..., max_length=2000)


class CommentResponse(BaseModel):
    """Comment"""
    id: str
    media_id: str
    user_id: str
    user_name: str
    text: str
    user_avatar: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CommentListResponse(BaseModel):
    """Comment list response"""
    items: List[CommentResponse]
    total: int


class MigrationResponse(BaseModel):
    """Number of records migrated per collection"""
    counts: Dict[str, int]
    success: bool = True


class MessageResponse(BaseModel):
    """Generic message response"""
    message: str
    success: bool = True


class ErrorResponse(BaseModel):
    """Error response"""
    error: str
    detail: Optional[str] = None
    success: bool = False
