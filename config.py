from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Lender Sync API"
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./lender_sync.db"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    api_host: str = "0.0.0.0"
    api_port: int = 3005

    # Shared secret the Flex platform sends in the x-sync-key header
    flex_sync_key: str = ""

    # Outbound mailer (send-notification-email style endpoint)
    notification_url: str = ""
    notification_service_key: str = ""
    notification_timeout: float = 10.0
    notification_max_attempts: int = 3

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


settings = Settings()
