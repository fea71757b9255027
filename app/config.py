from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql://postgres:postgres@db:5432/nutrition"
    anthropic_api_key: str = ""

    vision_model: str = "claude-sonnet-4-5-20250929"

    # Anthropic API timeout settings (seconds)
    anthropic_timeout: int = 60
    anthropic_connect_timeout: int = 10

    # Image storage
    upload_dir: str = "uploads"
    temp_upload_dir: str = "upload_tmp"  # must stay outside the served upload_dir
    max_image_bytes: int = 10 * 1024 * 1024  # 10 MB
    stored_image_max_size: int = 1200  # longest edge in pixels
    stored_image_quality: int = 85

    # Auth settings
    session_cookie_name: str = "nutrition_session"
    session_max_age: int = 86400 * 30  # 30 days

    # Per-user limit on analysis requests (each one is a paid inference call)
    analysis_rate_limit: int = 40
    analysis_rate_window_seconds: int = 600

    log_level: str = "INFO"

    class Config:
        env_file = ".env"


settings = Settings()
