"""Configuration for the dashboard server."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    # GitHub OAuth application
    github_client_id: str = ""
    github_client_secret: str = ""
    github_oauth_url: str = "https://github.com/login/oauth"
    oauth_scope: str = "repo read:user workflow"

    # GitHub REST API
    github_api_url: str = "https://api.github.com"
    request_timeout: float = 30.0

    # Server Configuration
    server_host: str = "localhost"
    server_port: int = 5000
    use_https: bool = False
    environment: str = "development"

    # Browser storage bridge
    storage_timeout: float = 5.0

    # Logging Configuration
    log_level: str = "INFO"
    json_logs: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def base_url(self) -> str:
        """Public URL the server is reachable on."""
        scheme = "https" if self.use_https else "http"
        return f"{scheme}://{self.server_host}:{self.server_port}"

    @property
    def oauth_callback_url(self) -> str:
        return f"{self.base_url}/api/auth/callback"

    @property
    def oauth_configured(self) -> bool:
        return bool(self.github_client_id and self.github_client_secret)


settings = Settings()


def get_settings() -> Settings:
    """FastAPI dependency returning the process-wide settings."""
    return settings
