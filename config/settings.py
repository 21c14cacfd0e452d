"""
Settings Configuration
Pydantic-validated configuration for the retrieval engine.
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class MediaSettings(BaseSettings):
    """Limits, binaries and directories consumed by the retrieval core."""
    max_file_size: int = Field(default=25 * 1024 * 1024, description="Maximum remote file size in bytes")
    max_user_queue_size: int = Field(default=3, description="Concurrent retrievals allowed per user")

    ffmpeg_bin: str = Field(default="ffmpeg", description="Transcoder binary")
    ffmpeg_timeout: float = Field(default=300.0, description="Transcoder wall-clock limit (seconds)")
    ffmpeg_max_concurrency: int = Field(default=4, description="Parallel transcoder processes")
    ytdl_bin: str = Field(default="yt-dlp", description="General downloader binary")

    tmp_dir: str = Field(default="/tmp", description="Staging directory for files awaiting transcode")
    download_dir: str = Field(default="./data/downloads", description="Directory of served files")
    host: str = Field(default="http://localhost:8080/", description="Public base URL of the download directory")

    rapid_api_key: Optional[str] = Field(default=None, description="Scraper API key")
    cache_ttl: float = Field(default=24 * 60 * 60, description="Result cache lifetime (seconds)")
    cache_sweep_interval: float = Field(default=24 * 60 * 60, description="Background cache sweep period (seconds)")
    debug: bool = Field(default=False, description="Verbose logging")

    @property
    def tmp_path(self) -> Path:
        return Path(self.tmp_dir)

    @property
    def download_path(self) -> Path:
        return Path(self.download_dir)


class HttpSettings(BaseSettings):
    """Shared HTTP client configuration"""
    request_timeout: float = Field(default=30.0, description="Request timeout (seconds)")
    user_agent: str = Field(default="MediaEngine/1.0", description="User Agent")

    class Config:
        env_prefix = "HTTP_"


class Settings(BaseSettings):
    """Top-level settings aggregating every section."""

    media: MediaSettings = Field(default_factory=MediaSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """Load settings after applying an optional .env file."""
        if env_path is None:
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        return cls(
            media=MediaSettings(),
            http=HttpSettings(),
        )


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings singleton (composition root only)."""
    return Settings.load_from_env_file()
