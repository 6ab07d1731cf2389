from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    trips_api_url: str = "http://localhost:5000"
    redis_url: str = "redis://localhost:6379/0"
    poll_interval_seconds: int = 30
    http_timeout_seconds: float = 10.0
    route_lookup_timeout_seconds: float = 15.0
    completion_threshold: int = 90
    review_max_length: int = 500
    max_photos: int = 3
    finished_retention_minutes: int = 60

    model_config = {"env_prefix": "", "case_sensitive": False}


settings = Settings()
