"""
Configuration module for loading environment variables.
All tunables for reconciliation, pricing and reporting are read here.
"""
import os


class Config:
    """Application configuration loaded from environment variables."""

    # Reconciliation defaults
    # Tier assumed for network interfaces that do not name one explicitly,
    # unless the project record carries its own defaultNetworkTier.
    DEFAULT_NETWORK_TIER: str = os.getenv("ASSETCOST_DEFAULT_NETWORK_TIER", "STANDARD").upper()
    # OS reported for licenses whose prefix is not in the lookup table
    FALLBACK_OS: str = os.getenv("ASSETCOST_FALLBACK_OS", "Debian")

    # Usage assumptions
    HOURS_PER_MONTH: int = 30 * 24
    PROJECTED_HOURS_PER_MONTH: int = int(os.getenv("ASSETCOST_PROJECTED_HOURS_PER_MONTH", "720"))
    REPORT_CURRENCY: str = os.getenv("ASSETCOST_REPORT_CURRENCY", "USD")
    # External egress assumed per subnetwork, in GiB per month
    EGRESS_GIB_PER_MONTH: float = float(os.getenv("ASSETCOST_EGRESS_GIB_PER_MONTH", "1"))

    # Cloud Billing Catalog API
    BILLING_API_BASE_URL: str = os.getenv(
        "ASSETCOST_BILLING_API_BASE_URL",
        "https://cloudbilling.googleapis.com/v1"
    ).rstrip("/")
    BILLING_API_KEY: str = os.getenv("ASSETCOST_BILLING_API_KEY", "")
    BILLING_API_TIMEOUT: float = float(os.getenv("ASSETCOST_BILLING_API_TIMEOUT", "30"))
    PRICING_CACHE_TTL_SECONDS: int = int(os.getenv("PRICING_CACHE_TTL_SECONDS", "86400"))  # 24 hours
    CIRCUIT_FAILURE_THRESHOLD: int = int(os.getenv("ASSETCOST_CIRCUIT_FAILURE_THRESHOLD", "3"))
    CIRCUIT_OPEN_SECONDS: int = int(os.getenv("ASSETCOST_CIRCUIT_OPEN_SECONDS", "60"))

    # HTTP API limits
    MAX_REQUEST_BODY_BYTES: int = int(os.getenv("ASSETCOST_MAX_REQUEST_BODY_BYTES", str(10 * 1024 * 1024)))
    MAX_RECORDS_PER_REQUEST: int = int(os.getenv("ASSETCOST_MAX_RECORDS_PER_REQUEST", "20000"))

    LOG_LEVEL: str = os.getenv("ASSETCOST_LOG_LEVEL", "INFO").upper()

    @classmethod
    def validate(cls) -> None:
        """
        Validates that configuration values are usable.

        Raises:
            ValueError: If any configuration value is missing or invalid.
        """
        if cls.DEFAULT_NETWORK_TIER not in ("STANDARD", "PREMIUM"):
            raise ValueError(
                f"ASSETCOST_DEFAULT_NETWORK_TIER must be STANDARD or PREMIUM "
                f"(got: {cls.DEFAULT_NETWORK_TIER})"
            )
        if not cls.FALLBACK_OS:
            raise ValueError("ASSETCOST_FALLBACK_OS is required")
        if not 0 <= cls.PROJECTED_HOURS_PER_MONTH <= cls.HOURS_PER_MONTH:
            raise ValueError(
                f"ASSETCOST_PROJECTED_HOURS_PER_MONTH must be between 0 and "
                f"{cls.HOURS_PER_MONTH} (got: {cls.PROJECTED_HOURS_PER_MONTH})"
            )
        if not cls.BILLING_API_BASE_URL.startswith(("http://", "https://")):
            raise ValueError(
                f"ASSETCOST_BILLING_API_BASE_URL must be a valid URL (got: {cls.BILLING_API_BASE_URL})"
            )
        if not cls.REPORT_CURRENCY:
            raise ValueError("ASSETCOST_REPORT_CURRENCY is required")
        if cls.EGRESS_GIB_PER_MONTH < 0:
            raise ValueError(
                f"ASSETCOST_EGRESS_GIB_PER_MONTH must not be negative (got: {cls.EGRESS_GIB_PER_MONTH})"
            )


config = Config()
