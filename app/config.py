"""
Application configuration with automatic environment detection.
Built once at process start and handed to every component explicitly.
"""
import os
from typing import Any, List, Optional
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings. Keyword overrides win over the environment (used by tests)."""

    def __init__(self, **overrides: Any):
        def get(name: str, default: Any = "") -> Any:
            if name in overrides:
                return overrides[name]
            return os.getenv(name, default)

        # Environment detection
        self.ENV = str(get("ENV", "DEV")).upper()
        self.IS_PRODUCTION = self.ENV in ("PROD", "PRODUCTION")
        self.IS_DEVELOPMENT = not self.IS_PRODUCTION

        # Server configuration
        self.HOST = get("HOST", "127.0.0.1")
        self.PORT = int(get("PORT", 8000))

        # Public base URL of this service (webhook addresses). Falls back to the request host.
        self.APP_URL = str(get("APP_URL", "")).strip().rstrip("/")

        # Shopify app
        self.SHOPIFY_API_KEY = str(get("SHOPIFY_API_KEY", "")).strip()
        self.SHOPIFY_API_SECRET = str(get("SHOPIFY_API_SECRET", "")).strip()
        # Webhooks are signed with the app secret unless a dedicated one is configured
        self.SHOPIFY_WEBHOOK_SECRET = str(get("SHOPIFY_WEBHOOK_SECRET", "")).strip() or self.SHOPIFY_API_SECRET
        self.SHOPIFY_SCOPES = str(get("SHOPIFY_SCOPES", "read_orders,read_customers,read_products")).strip()
        self.SHOPIFY_API_VERSION = str(get("SHOPIFY_API_VERSION", "2024-01")).strip()
        self.SHOPIFY_PAGE_LIMIT = int(get("SHOPIFY_PAGE_LIMIT", 250))

        # Firestore REST document store
        self.FIRESTORE_PROJECT_ID = str(get("FIRESTORE_PROJECT_ID", "")).strip()
        self.FIRESTORE_API_KEY = str(get("FIRESTORE_API_KEY", "")).strip()
        self.FIRESTORE_BASE_URL = str(get("FIRESTORE_BASE_URL", "https://firestore.googleapis.com/v1")).strip().rstrip("/")

        # Outbound HTTP
        self.HTTP_TIMEOUT = float(get("HTTP_TIMEOUT", 30.0))

        # Logging
        self.LOG_LEVEL = str(get("LOG_LEVEL", "INFO" if self.IS_PRODUCTION else "DEBUG")).upper()

        self._allowed_origins = str(get("ALLOWED_ORIGINS", ""))

    @property
    def ALLOWED_ORIGINS(self) -> List[str]:
        """CORS origins: localhost in development plus the comma-separated ALLOWED_ORIGINS value."""
        origins = []
        if self.IS_DEVELOPMENT:
            origins.extend([
                "http://localhost:3000",
                "http://127.0.0.1:3000",
            ])
        for origin in self._allowed_origins.split(","):
            origin = origin.strip()
            if origin and origin not in origins:
                origins.append(origin)
        return origins

    @property
    def FIRESTORE_DOCUMENTS_URL(self) -> Optional[str]:
        if not self.FIRESTORE_PROJECT_ID:
            return None
        return f"{self.FIRESTORE_BASE_URL}/projects/{self.FIRESTORE_PROJECT_ID}/databases/(default)/documents"

    @property
    def shopify_configured(self) -> bool:
        return bool(self.SHOPIFY_API_KEY and self.SHOPIFY_API_SECRET)

    @property
    def firestore_configured(self) -> bool:
        return bool(self.FIRESTORE_PROJECT_ID and self.FIRESTORE_API_KEY)

    def __str__(self):
        return f"Settings(ENV={self.ENV}, IS_PRODUCTION={self.IS_PRODUCTION})"
