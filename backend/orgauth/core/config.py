from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=None, extra="ignore")

    ENV: str = "prod"

    DATABASE_URL: str = "postgresql+psycopg://localhost/orgauth"

    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 5
    DB_POOL_TIMEOUT_SECONDS: int = 30
    DB_POOL_RECYCLE_SECONDS: int = 1800
    DB_STATEMENT_TIMEOUT_MS: int = 5000

    # Tenant stores: one physical database per organization
    TENANT_DATABASE_URL_TEMPLATE: str = "postgresql+psycopg://localhost/{db}"
    TENANT_DB_PREFIX: str = "org_"
    TENANT_DB_POOL_SIZE: int = 2
    TENANT_DB_MAX_OVERFLOW: int = 3

    JWT_SECRET: str = "CHANGE_ME"
    JWT_PREVIOUS_SECRETS: str = ""
    JWT_ISSUER: str = "orgauth"
    TOKEN_TTL_HOURS: int = 24
    SESSION_TTL_HOURS: int = 24

    LOGIN_KEY_PEPPER: str = "CHANGE_ME"
    LOCKOUT_FAIL_CLOSED: bool = False

    OTP_TTL_MINUTES: int = 10

    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CERTS_URL: str = "https://www.googleapis.com/oauth2/v3/certs"
    GOOGLE_CERTS_CACHE_SECONDS: int = 3600
    HTTP_TIMEOUT_SECONDS: int = 10

    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_USE_TLS: bool = True
    EMAIL_FROM: str | None = None
    EMAIL_FROM_NAME: str = "OrgAuth"

    ALLOWED_HOSTS: str = "localhost,127.0.0.1"
    SECURITY_HEADERS_ENABLED: bool = True

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    AUTH_RETENTION_DAYS: int = 30

    BOOTSTRAP_SUPERADMIN_EMAIL: str | None = None
    BOOTSTRAP_SUPERADMIN_PASSWORD: str | None = None
    BOOTSTRAP_SUPERADMIN_NAME: str = "System Administrator"

settings = Settings()
