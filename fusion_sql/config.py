from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FusionConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FUSION_SQL_FUSION__",
        env_file=".env",
        extra="ignore",
    )

    service_path: str = "/xmlpserver/services/ExternalReportWSSService"
    # Must already exist on the Fusion side; it takes p_sql and p_rows.
    report_path: str = "/Custom/CidUtils/RunSQL.xdo"
    query_timeout_s: float = 60
    probe_timeout_s: float = 30
    default_rows: int = 5000
    max_rows: int = 100_000
    probe_sql: str = "SELECT 1 FROM dual"
    maintenance_signatures: list[str] = Field(default_factory=lambda: ["scheduled maintenance"])
    verify_tls: bool = True


class HistoryConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FUSION_SQL_HISTORY__",
        env_file=".env",
        extra="ignore",
    )

    path: str = ""  # empty keeps history in memory only
    default_limit: int = 10
    max_limit: int = 100


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="FUSION_SQL_", env_file=".env", extra="ignore")

    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    fusion: FusionConfig = FusionConfig()
    history: HistoryConfig = HistoryConfig()


settings = Settings()
