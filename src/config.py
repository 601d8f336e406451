"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Storage
    store_backend: str = "memory"  # memory | redis
    redis_url: str = "redis://localhost:6379/0"

    # WhatsApp
    whatsapp_provider: str = "cloud_api"  # cloud_api | twilio
    whatsapp_verify_token: str = ""

    # WhatsApp Cloud API (Meta)
    whatsapp_token: str = ""
    whatsapp_phone_number_id: str = ""
    whatsapp_api_version: str = "v21.0"

    # Twilio (WhatsApp)
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_whatsapp_number: str = ""  # e.g. "+14155238886" for sandbox

    # Salesforce
    salesforce_login_url: str = "https://login.salesforce.com"
    salesforce_client_id: str = ""
    salesforce_client_secret: str = ""
    salesforce_username: str = ""
    salesforce_password: str = ""
    salesforce_security_token: str = ""
    salesforce_api_version: str = "v59.0"

    # App
    log_level: str = "INFO"
    environment: str = "development"

    # Conversation
    collaborator_timeout_seconds: float = 15.0
    completed_reset_seconds: int = 0  # 0 disables the post-completion reset

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
