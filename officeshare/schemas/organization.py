from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from officeshare.core.config import settings


class OrganizationAction(BaseModel):
    action: Literal["create", "join"]
    name: str | None = Field(None, max_length=120)
    description: str | None = Field(None, max_length=2000)
    max_members: int | None = Field(None, ge=1, le=settings.ORG_MAX_MEMBERS_LIMIT, alias="maxMembers")
    secret_key: str | None = Field(None, max_length=16, alias="secretKey")

    class Config:
        populate_by_name = True


class OrganizationInfo(BaseModel):
    id: str
    name: str
    description: str | None = None
    secret_key: str
    max_members: int
    created_by: str
    created_at: datetime
    user_role: str | None = None

    class Config:
        from_attributes = True


class OrganizationResponse(BaseModel):
    organization: OrganizationInfo | None


class MemberInfo(BaseModel):
    id: str
    organization_id: str
    user_id: str
    email: str | None = None
    role: str
    joined_at: datetime


class MemberListResponse(BaseModel):
    members: list[MemberInfo]


class NoticeCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1, max_length=10000)


class NoticeInfo(BaseModel):
    id: str
    organization_id: str
    title: str
    content: str
    created_by: str
    author_email: str | None = None
    created_at: datetime


class NoticeListResponse(BaseModel):
    notices: list[NoticeInfo]
