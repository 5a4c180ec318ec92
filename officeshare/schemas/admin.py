from pydantic import BaseModel


class PlatformStats(BaseModel):
    total_users: int
    total_files: int
    total_storage: int
    total_downloads: int
    recent_users: int
    recent_files: int
    admin_count: int


class FileTypeStat(BaseModel):
    type: str
    count: int
    total_size: int
    percentage: int
    size_percentage: int


class FileTypeStatsResponse(BaseModel):
    file_type_stats: list[FileTypeStat]
    total_files: int
    total_size: int
