from functools import lru_cache
from typing import List, Tuple

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

from src.utils.exception import ConfigurationError

# Load .env file into environment variables so os.getenv() works
load_dotenv()


class Settings(BaseSettings):
    app_name: str = "faasr-backend"

    env: str = "development"

    # "cookie" (stateless signed cookie) or "supabase" (platform auth)
    SESSION_PROVIDER: str = "cookie"

    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_APP_ID: str = ""
    GITHUB_PRIVATE_KEY: str = ""
    GITHUB_CLIENT_ID: str = ""
    GITHUB_CLIENT_SECRET: str = ""
    GITHUB_INSTALLATION_URL: str = ""
    GITHUB_CALLBACK_URL_V2: str = ""
    FRONTEND_URL: str = ""
    JWT_SECRET: str = ""

    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    SUPABASE_ANON_KEY: str = ""

    CORS_ORIGIN: str = "http://localhost:3000"
    CORS_HEADERS: str = "authorization, x-client-info, apikey, content-type"
    CORS_CREDENTIALS: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"

    @property
    def github_private_key(self) -> str:
        # Keys stored in a single env line carry escaped newlines
        return self.GITHUB_PRIVATE_KEY.replace("\\n", "\n")

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGIN.split(",") if origin.strip()]

    @property
    def cors_headers(self) -> List[str]:
        return [header.strip() for header in self.CORS_HEADERS.split(",") if header.strip()]

    def require(self, *names: str) -> Tuple[str, ...]:
        """
        Return the values of the named settings, failing if any is empty.

        Raises:
            ConfigurationError: listing every missing variable at once
        """
        missing = [name for name in names if not getattr(self, name, None)]
        if missing:
            raise ConfigurationError(f"Missing environment variables: {', '.join(missing)}")
        values = []
        for name in names:
            values.append(self.github_private_key if name == "GITHUB_PRIVATE_KEY" else getattr(self, name))
        return tuple(values)


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
