from decimal import Decimal

from pydantic import Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Read env from container + optionally from files
    model_config = SettingsConfigDict(
        env_file=(".env", ".env.docker"),
        extra="ignore",
        case_sensitive=False,
    )

    # App
    ENVIRONMENT: str = Field(default="docker", validation_alias=AliasChoices("ENVIRONMENT", "environment"))
    APP_NAME: str = Field(default="gst_invoicing", validation_alias=AliasChoices("APP_NAME", "app_name"))
    LOG_LEVEL: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL", "log_level"))
    DEBUG: bool = Field(default=False, validation_alias=AliasChoices("DEBUG", "debug"))
    LOG_JSON: bool = Field(default=False, validation_alias=AliasChoices("LOG_JSON", "log_json"))

    # Infrastructure
    DATABASE_URL: str = Field(
        default="postgresql+asyncpg://postgres:postgres@db:5432/gst_invoicing",
        validation_alias=AliasChoices("DATABASE_URL", "database_url"),
    )

    # Calendar days, financial years and {YYYY} tokens are taken in this zone
    INVOICE_TIMEZONE: str = Field(default="Asia/Kolkata", validation_alias=AliasChoices("INVOICE_TIMEZONE", "invoice_timezone"))

    # Tax defaults
    DEFAULT_GST_RATE: Decimal = Field(default=Decimal("18"), validation_alias=AliasChoices("DEFAULT_GST_RATE", "default_gst_rate"))
    PLATFORM_SAC_CODE: str = Field(default="9983", validation_alias=AliasChoices("PLATFORM_SAC_CODE", "platform_sac_code"))

    # Merchant (order invoice) numbering
    MERCHANT_INVOICE_PREFIX: str = Field(default="MRC", validation_alias=AliasChoices("MERCHANT_INVOICE_PREFIX", "merchant_invoice_prefix"))
    MERCHANT_INVOICE_PADDING: int = Field(default=5, validation_alias=AliasChoices("MERCHANT_INVOICE_PADDING", "merchant_invoice_padding"))
    MERCHANT_INVOICE_SERIES_FORMAT: str = Field(
        default="{PREFIX}-{YYYY}-{NNNNN}",
        validation_alias=AliasChoices("MERCHANT_INVOICE_SERIES_FORMAT", "merchant_invoice_series_format"),
    )

    # Platform (billing invoice) numbering
    PLATFORM_INVOICE_PREFIX: str = Field(default="SMK", validation_alias=AliasChoices("PLATFORM_INVOICE_PREFIX", "platform_invoice_prefix"))
    PLATFORM_INVOICE_PADDING: int = Field(default=5, validation_alias=AliasChoices("PLATFORM_INVOICE_PADDING", "platform_invoice_padding"))
    PLATFORM_INVOICE_SERIES_FORMAT: str = Field(
        default="{PREFIX}-{FY}-{NNNNN}",
        validation_alias=AliasChoices("PLATFORM_INVOICE_SERIES_FORMAT", "platform_invoice_series_format"),
    )

    # Allocation retries (conflicts / lock timeouts)
    INVOICE_ALLOCATION_MAX_ATTEMPTS: int = Field(
        default=5,
        validation_alias=AliasChoices("INVOICE_ALLOCATION_MAX_ATTEMPTS", "invoice_allocation_max_attempts"),
    )
    INVOICE_ALLOCATION_RETRY_DELAY: float = Field(
        default=0.05,
        validation_alias=AliasChoices("INVOICE_ALLOCATION_RETRY_DELAY", "invoice_allocation_retry_delay"),
    )

    # PDF rendering. Empty -> built-in Helvetica family.
    PDF_FONT_DIR: str = Field(default="", validation_alias=AliasChoices("PDF_FONT_DIR", "pdf_font_dir"))


settings = Settings()
