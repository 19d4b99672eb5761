import json
from typing import Annotated, Any, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from celine.apns.certificates import (
    CertificateStore,
    ClientCertificate,
    default_stores,
    load_certificates,
)
from celine.apns.connection import DEFAULT_PORT, ApnsConfiguration, ApnsEnvironment


class Settings(BaseSettings):
    """
    APNs client settings.
    Loaded from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Endpoint; APNS_HOST overrides the environment's host
    APNS_ENVIRONMENT: ApnsEnvironment = ApnsEnvironment.production
    APNS_HOST: Optional[str] = None
    APNS_PORT: int = DEFAULT_PORT

    # Client certificate (.p12/.pfx or PEM with key)
    APNS_CERTIFICATE_PATH: Optional[str] = None
    APNS_CERTIFICATE_PASSWORD: Optional[str] = None
    # Comma-separated paths, or a JSON array
    APNS_ADDITIONAL_CERTIFICATE_PATHS: Annotated[List[str], NoDecode] = []

    # System certificate stores
    APNS_INCLUDE_SYSTEM_STORES: bool = False
    APNS_MACHINE_STORE_PATH: Optional[str] = None
    APNS_USER_STORE_PATH: Optional[str] = None

    # Default topic (app bundle id) for the CLI
    APNS_TOPIC: Optional[str] = None

    LOG_LEVEL: str = "INFO"

    @field_validator("APNS_ADDITIONAL_CERTIFICATE_PATHS", mode="before")
    @classmethod
    def _split_paths(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        value = value.strip()
        if value.startswith("["):
            return json.loads(value)
        return [p.strip() for p in value.split(",") if p.strip()]

    def to_configuration(self) -> ApnsConfiguration:
        certificate = None
        if self.APNS_CERTIFICATE_PATH:
            certificate = ClientCertificate.from_file(
                self.APNS_CERTIFICATE_PATH, self.APNS_CERTIFICATE_PASSWORD
            )

        additional = []
        for path in self.APNS_ADDITIONAL_CERTIFICATE_PATHS:
            additional.extend(load_certificates(path))

        return ApnsConfiguration(
            host=self.APNS_HOST or self.APNS_ENVIRONMENT.host,
            port=self.APNS_PORT,
            certificate=certificate,
            additional_certificates=tuple(additional),
            include_system_stores=self.APNS_INCLUDE_SYSTEM_STORES,
        )

    def certificate_stores(self) -> tuple[CertificateStore, CertificateStore]:
        return default_stores(self.APNS_MACHINE_STORE_PATH, self.APNS_USER_STORE_PATH)


settings = Settings()
