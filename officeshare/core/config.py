import os


def _bool_env(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _extensions_env(name: str, default: set) -> set:
    raw = os.getenv(name)
    if not raw:
        return default
    return {"." + ext.strip().lower().lstrip(".") for ext in raw.split(",") if ext.strip()}


class Settings:
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./officeshare.db")
    SQL_ECHO: bool = _bool_env("SQL_ECHO")

    SECRET_KEY: str = os.getenv("SECRET_KEY", "your-secret-key")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
    SESSION_COOKIE_NAME: str = os.getenv("SESSION_COOKIE_NAME", "officeshare_session")
    SESSION_COOKIE_SECURE: bool = _bool_env("SESSION_COOKIE_SECURE")

    MINIO_ENDPOINT: str = os.getenv("MINIO_ENDPOINT", "minio:9000")
    MINIO_ACCESS_KEY: str = os.getenv("MINIO_ACCESS_KEY", "minioadmin")
    MINIO_SECRET_KEY: str = os.getenv("MINIO_SECRET_KEY", "minioadmin")
    MINIO_BUCKET: str = os.getenv("MINIO_BUCKET", "secure-files")
    MINIO_SECURE: bool = _bool_env("MINIO_SECURE")

    PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    MAX_FILE_SIZE: int = int(os.getenv("MAX_FILE_SIZE", str(1024 * 1024 * 1024)))
    DEFAULT_EXPIRES_HOURS: int = int(os.getenv("DEFAULT_EXPIRES_HOURS", "24"))
    MAX_EXPIRES_HOURS: int = int(os.getenv("MAX_EXPIRES_HOURS", str(24 * 30)))
    DEFAULT_MAX_VIEWS: int = int(os.getenv("DEFAULT_MAX_VIEWS", "1"))
    MAX_MAX_VIEWS: int = int(os.getenv("MAX_MAX_VIEWS", "1000"))
    ORG_SECRET_LENGTH: int = 6
    ORG_MAX_MEMBERS_LIMIT: int = int(os.getenv("ORG_MAX_MEMBERS_LIMIT", "500"))

    # comma separated, e.g. "pdf,docx,png"
    ALLOWED_EXTENSIONS: set = _extensions_env("ALLOWED_EXTENSIONS", {
            ".pdf", ".doc", ".docx", ".odt", ".rtf", ".txt", ".md",
            ".xls", ".xlsx", ".ods", ".csv",
            ".ppt", ".pptx", ".odp",

            ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tif", ".tiff", ".svg", ".webp", ".ico",

            ".zip", ".rar", ".7z", ".tar", ".gz",

            ".mp3", ".wav", ".flac", ".aac", ".ogg", ".m4a",

            ".mp4", ".mov", ".avi", ".mkv", ".flv", ".wmv", ".webm",

            ".py", ".js", ".html", ".htm", ".css", ".php", ".java", ".c", ".cpp", ".h",
            ".cs", ".go", ".rb", ".swift",

            ".json", ".xml", ".apk",
    })

settings = Settings()
