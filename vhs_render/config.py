"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # Supabase (auth)
    supabase_url: str = ""
    supabase_anon_key: str = ""

    # Object storage (S3-compatible, Cloudflare R2 in production)
    storage_endpoint_url: str = ""
    storage_access_key_id: str = ""
    storage_secret_access_key: str = ""
    storage_bucket: str = ""
    storage_public_base_url: str = ""
    storage_region: str = "auto"

    # Rendering
    render_temp_dir: str = "/tmp/vhs_render"
    ffmpeg_binary: str = "ffmpeg"
    render_dispatch_mode: str = "local"  # "local" or "external"
    download_timeout_seconds: int = 60

    # Job queue
    queue_drain_delay_seconds: float = 0.1
    render_timeout_seconds: Optional[float] = None
    strict_transitions: bool = False

    # Retention
    job_retention_hours: int = 24
    sweep_interval_seconds: int = 3600
    workspace_ttl_hours: int = 2

    # Server
    port: int = 3001
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:3000"]
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
