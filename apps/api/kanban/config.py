from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://kanban:kanban@db:5432/kanban"
  app_secret: str = "dev-secret-change-me"
  app_version: str = "v2026-10-18"
  build_sha: str = "dev"

  cookie_secure: bool = False
  cookie_domain: str | None = None
  token_ttl_days: int = 7
  password_min_length: int = 6

  rate_limit_auth_ip_per_minute: int = 60
  rate_limit_auth_email_per_minute: int = 20
  redis_url: str | None = None

  cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
  cors_origin_regex: str = r"^http://(localhost|127\.0\.0\.1):3000$"
  trusted_hosts: str = "localhost,127.0.0.1,api,web,test"

  default_columns: str = "To Do,In Progress,Done"
  upload_dir: str = "data/uploads"
  max_attachment_bytes: int = 10 * 1024 * 1024

  log_level: str = "INFO"
  log_sql: bool = False

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

  def trusted_host_list(self) -> list[str]:
    return [h.strip() for h in self.trusted_hosts.split(",") if h.strip()]

  def default_column_names(self) -> list[str]:
    return [c.strip() for c in self.default_columns.split(",") if c.strip()]

  def is_test_db(self) -> bool:
    db_name = self.database_url.rsplit("/", 1)[-1]
    return "test" in db_name


settings = Settings()
