from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://taskloom:taskloom@db:5432/taskloom"
  app_secret: str = "dev-secret-change-me"
  app_version: str = "v2026-10-18"
  build_sha: str = "dev"
  log_level: str = "INFO"
  api_docs_enabled: bool = True

  cookie_secure: bool = False
  cookie_domain: str | None = None

  rate_limit_login_ip_per_minute: int = 60
  rate_limit_login_email_per_minute: int = 20
  redis_url: str | None = None

  cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
  cors_origin_regex: str = r"^http://(localhost|127\.0\.0\.1):3000$"
  trusted_hosts: str = "localhost,127.0.0.1,0.0.0.0,api,web"

  ai_provider: str = "local"  # local | openai
  openai_api_key: str | None = None
  openai_base_url: str = "https://api.openai.com/v1"
  ai_model: str = "gpt-4o-mini"
  ai_temperature: float = 0.7
  ai_timeout_seconds: float = 60.0

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

  def trusted_host_list(self) -> list[str]:
    return [h.strip() for h in self.trusted_hosts.split(",") if h.strip()]

  def is_test_database(self) -> bool:
    db_name = self.database_url.rsplit("/", 1)[-1]
    return "test" in db_name


settings = Settings()
