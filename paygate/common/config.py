"""Central environment-driven settings shared by checkout and callback services.

Each service process loads this once at startup. Service-specific behavior is
controlled by environment variables (see `.env.example`).
"""

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "unknown-service"
    log_level: str = "INFO"
    postgres_dsn: str
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    gateway_name: str = "airwallex"
    gateway_timeout_seconds: float = 30.0
    gateway_max_retries: int = 2
    # Percent surcharge per gateway name, e.g. GATEWAY_SURCHARGES='{"airwallex": "2.5"}'.
    gateway_surcharges: dict[str, Decimal] = {}
    callback_url: str = "http://localhost:8002/callback"
    status_page_url: str = "http://localhost:8080/payment/status"
    merchant_order_prefix: str = "pgw"
    webhook_tolerance_seconds: int = 300
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = CommonSettings()
