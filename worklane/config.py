from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    database_url: str = "postgresql+psycopg://app:app@db:5432/app"
    sql_echo: bool = False

    log_level: str = "INFO"

    jwt_secret: str = "dev-secret-change-me-0123456789abcdef"
    jwt_issuer: str = "worklane"
    jwt_audience: str = "worklane"
    jwt_expires_minutes: int = 60

    # system role given to whoever creates an organization
    creator_role_name: str = "SUPER_ADMIN"

    # emails allowed to extend the global permission catalog
    catalog_admin_emails: list[str] = []

settings = Settings()
