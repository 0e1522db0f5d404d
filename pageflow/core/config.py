from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24

    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"
    sql_echo: bool = False

    # Development/test convenience; production schemas come from alembic
    auto_create_tables: bool = False

    # Realtime relay
    ws_heartbeat_timeout: float = 60.0
    ws_outbound_queue_size: int = 1000

    # PostgreSQL variables for Docker
    postgres_user: str = ""
    postgres_password: str = ""
    postgres_db: str = ""

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
