from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _parse_bool(raw: str | None, default: bool = False) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True, slots=True)
class ShopifyConfig:
    store_domain: str
    api_version: str
    access_token: str
    client_id: str
    client_secret: str
    timeout_seconds: float = 30.0

    @property
    def graphql_url(self) -> str:
        return f"https://{self.store_domain}/admin/api/{self.api_version}/graphql.json"

    @property
    def token_url(self) -> str:
        return f"https://{self.store_domain}/admin/oauth/access_token"

    @property
    def is_configured(self) -> bool:
        if not self.store_domain:
            return False
        return bool(self.access_token) or bool(self.client_id and self.client_secret)

    @classmethod
    def from_env(cls) -> "ShopifyConfig":
        return cls(
            store_domain=os.getenv("SHOPIFY_STORE_DOMAIN", "").strip(),
            api_version=os.getenv("SHOPIFY_API_VERSION", "2024-01").strip(),
            access_token=os.getenv("SHOPIFY_ADMIN_API_ACCESS_TOKEN", "").strip(),
            client_id=os.getenv("SHOPIFY_CLIENT_ID", "").strip(),
            client_secret=os.getenv("SHOPIFY_CLIENT_SECRET", "").strip(),
        )


@dataclass(frozen=True, slots=True)
class SmtpConfig:
    host: str
    port: int
    secure: bool
    user: str
    password: str
    from_email: str
    from_name: str

    @property
    def is_configured(self) -> bool:
        return bool(self.user and self.password)

    @classmethod
    def from_env(cls) -> "SmtpConfig":
        user = os.getenv("SMTP_USER", "")
        return cls(
            host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
            port=int(os.getenv("SMTP_PORT", "587")),
            secure=_parse_bool(os.getenv("SMTP_SECURE"), default=False),
            user=user,
            password=os.getenv("SMTP_PASS", ""),
            from_email=os.getenv("FROM_EMAIL") or user or "noreply@brownsugarbakerychicago.com",
            from_name=os.getenv("FROM_NAME", "Brown Sugar Bakery"),
        )


@dataclass(frozen=True, slots=True)
class TwilioConfig:
    account_sid: str
    auth_token: str
    from_number: str

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    @classmethod
    def from_env(cls) -> "TwilioConfig":
        return cls(
            account_sid=os.getenv("TWILIO_ACCOUNT_SID", ""),
            auth_token=os.getenv("TWILIO_AUTH_TOKEN", ""),
            from_number=os.getenv("TWILIO_PHONE_NUMBER", ""),
        )


@dataclass(frozen=True, slots=True)
class StorageConfig:
    documents_dir: Path
    public_base_url: str

    @classmethod
    def from_env(cls) -> "StorageConfig":
        return cls(
            documents_dir=Path(
                os.getenv("GIFTING_DOCUMENTS_DIR", ".local/documents")
            ).expanduser(),
            public_base_url=os.getenv("GIFTING_PUBLIC_BASE_URL", "http://localhost:8000").rstrip(
                "/"
            ),
        )
