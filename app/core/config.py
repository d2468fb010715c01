"""
Application configuration.
All settings are loaded from environment variables.
Use env.example as a reference for required variables.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    IMPORTANT: Credentials have no defaults - they MUST be set in .env file.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    # CORS: через запятую (например http://localhost:3000,http://admin-ui:80). Пусто = дефолтный список в коде.
    cors_origins: str = ""

    # ===========================================
    # DATABASE (PostgreSQL)
    # ===========================================
    database_url: str  # Required, no default

    # ===========================================
    # REDIS & CELERY
    # ===========================================
    redis_url: str  # Required, no default
    celery_broker_url: str  # Required, no default
    celery_result_backend: str  # Required, no default

    # ===========================================
    # PAYMENT GATEWAY (Razorpay)
    # ===========================================
    # Пустые ключи = шлюз выключен, initiate/complete отвечают GatewayUnavailable.
    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""
    razorpay_webhook_secret: str = ""
    razorpay_api_base: str = "https://api.razorpay.com/v1"
    payment_gateway_timeout: float = 10.0

    # ===========================================
    # PAYWALL (one-time unlock)
    # ===========================================
    access_window_seconds: int = 300  # 5 минут доступа после оплаты
    default_image_price: int = 10  # если у картинки в каталоге нет цены
    payment_currency: str = "INR"
    # Сколько живёт незавершённый pending перед тем, как новый initiate его закроет.
    pending_order_ttl_seconds: int = 900

    # ===========================================
    # STORAGE (Cloudflare R2 / S3; ссылки подписывает boto3 presigner)
    # ===========================================
    r2_account_id: str = ""
    # Явный endpoint (MinIO, локальный S3); иначе https://{account}.r2.cloudflarestorage.com
    r2_endpoint_url: str | None = None
    r2_access_key_id: str = ""
    r2_secret_access_key: str = ""
    r2_bucket_name: str = "gated"
    r2_region: str = "auto"
    # Подписчикам ссылка живёт час; разовой покупке - до конца окна доступа.
    subscription_url_ttl_seconds: int = 3600

    # ===========================================
    # EXPIRY SWEEP (только отчётность, на доступ не влияет)
    # ===========================================
    expiry_sweep_minutes: int = 5
    expiry_sweep_grace_seconds: int = 0
    expiry_sweep_batch_size: int = 500

    # ===========================================
    # ADMIN API
    # ===========================================
    admin_api_key: str | None = None  # Optional, but admin routes answer 401 without it

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30

    # ===========================================
    # LOGGING
    # ===========================================
    request_id_header: str = "X-Request-Id"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    # ===========================================
    # STATE MANAGEMENT
    # ===========================================
    idempotency_ttl: int = 86400  # webhook event ids, 24 hours

    @field_validator("payment_currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """ISO 4217 code, upper case."""
        v = v.strip().upper()
        if len(v) != 3:
            raise ValueError("payment_currency must be a 3-letter ISO code")
        return v

    @field_validator("access_window_seconds", "pending_order_ttl_seconds")
    @classmethod
    def validate_positive_window(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("window must be positive")
        return v

    @property
    def gateway_enabled(self) -> bool:
        return bool(self.razorpay_key_id and self.razorpay_key_secret)

    @property
    def r2_endpoint(self) -> str:
        if self.r2_endpoint_url:
            return self.r2_endpoint_url.rstrip("/")
        return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Игнорировать неизвестные поля из .env


settings = Settings()
