"""Configuration management using pydantic-settings"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    database_path: str = Field(default="./data/contracts.db", description="Path to SQLite database")
    storage_path: str = Field(default="./data/storage", description="Local directory for contract files")
    log_level: str = Field(default="INFO", description="Logging level")

    # Database mode: 'supabase' or 'sqlite'
    db_mode: str = Field(default="sqlite", description="Database backend: 'supabase' or 'sqlite'")

    # Supabase settings
    supabase_url: Optional[str] = Field(default=None, description="Supabase project URL")
    supabase_key: Optional[str] = Field(default=None, description="Supabase anon key")
    supabase_service_key: Optional[str] = Field(default=None, description="Supabase service role key")
    contracts_bucket: str = Field(default="vehicle-documents", description="Storage bucket for contract PDFs")
    signed_url_ttl: int = Field(default=3600, description="Lifetime of signed download URLs in seconds")

    # Signing workflow
    signature_validity_days: int = Field(default=7, description="Days a signature link stays valid")
    public_base_url: str = Field(default="http://localhost:8080", description="Base URL of the public signing page")

    # Seller details printed in every contract header
    company_name: str = Field(default="Auto City", description="Trade name")
    company_address: str = Field(default="Industrieweg 1, 1234 AB Amsterdam", description="Postal address")
    company_vat_id: str = Field(default="NL000000000B01", description="BTW-nummer")
    company_iban: str = Field(default="NL00BANK0000000000", description="Bank account (IBAN)")
    company_kvk: str = Field(default="00000000", description="KvK-nummer")
    company_email: Optional[str] = Field(default=None, description="Sender address for outgoing mail")

    # Outgoing mail
    smtp_host: Optional[str] = Field(default=None, description="SMTP host")
    smtp_port: int = Field(default=587, description="SMTP port")
    smtp_username: Optional[str] = Field(default=None, description="SMTP user")
    smtp_password: Optional[str] = Field(default=None, description="SMTP password")
    smtp_use_ssl: bool = Field(default=False, description="Use implicit TLS instead of STARTTLS")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


def get_settings() -> Settings:
    """Get application settings"""
    return Settings()
