from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "video-uploader"
    app_env: str = "dev"
    log_level: str = "INFO"

    storage_backend: str = "r2"
    r2_account_id: str = ""
    r2_bucket: str = ""
    r2_access_key_id: str = ""
    r2_secret_access_key: str = ""
    r2_endpoint_url: str = ""
    public_domain: str = "r2.dev"
    local_storage_dir: str = "uploads/bucket"

    max_upload_size_bytes: int = 100 * 1024 * 1024
    allowed_types: list[str] = ["video/mp4", "video/webm", "video/ogg", "video/quicktime"]
    features: list[str] = ["Cloudflare R2 Storage", "Adsterra Integration", "FastAPI"]
    adsterra_link: str = "https://www.adsterra.com"
    static_dir: str = ""

    model_config = SettingsConfigDict(env_file=".env", env_prefix="VUP_")

    @property
    def max_upload_size_label(self) -> str:
        return f"{self.max_upload_size_bytes // (1024 * 1024)}MB"


@lru_cache
def get_settings() -> Settings:
    return Settings()
