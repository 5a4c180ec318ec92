from datetime import datetime

from pydantic import BaseModel, Field


class ShareLinkInfo(BaseModel):
    link_id: str
    file_name: str
    file_size: int
    organization_id: str | None = None
    created_at: datetime
    expires_at: datetime
    max_views: int
    views: int

    class Config:
        from_attributes = True


class UploadResponse(ShareLinkInfo):
    share_url: str


class ShareLinkListResponse(BaseModel):
    files: list[ShareLinkInfo]
    total: int
    skip: int
    limit: int


class LinkMetadataResponse(BaseModel):
    file_name: str = Field(serialization_alias="fileName")
    file_size: int = Field(serialization_alias="fileSize")
    content_type: str = Field(serialization_alias="contentType")
    expires_at: datetime = Field(serialization_alias="expiresAt")
    max_views: int = Field(serialization_alias="maxViews")
    views: int
    is_expired: bool = Field(serialization_alias="isExpired")
    is_organization_file: bool = Field(serialization_alias="isOrganizationFile")
    is_owner: bool = Field(serialization_alias="isOwner")

    class Config:
        from_attributes = True
