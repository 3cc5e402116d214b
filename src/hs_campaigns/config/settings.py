"""Configuration and settings for the hs_campaigns package.

Centralizes environment-variable based configuration using Pydantic
for type safety and discoverability.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from hs_campaigns.services.retry import RetryPolicy


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Every pacing/retry knob of the list pipeline lives here so tests can
    build a zero-delay instance and pass it explicitly.
    """

    model_config = SettingsConfigDict(
        env_file=".env.local",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # HubSpot private app token. Validated lazily by the client so importing
    # the package never requires credentials.
    hubspot_access_token: Optional[str] = Field(None, validation_alias="HUBSPOT_ACCESS_TOKEN")
    hubspot_base_url: str = Field("https://api.hubapi.com", validation_alias="HUBSPOT_BASE_URL")
    http_timeout: float = Field(30.0, validation_alias="HUBSPOT_HTTP_TIMEOUT")

    # Membership reads
    page_size: int = Field(1000, validation_alias="HUBSPOT_RETRIEVAL_BATCH_SIZE")
    legacy_fallback: bool = Field(True, validation_alias="HUBSPOT_LEGACY_FALLBACK")

    # Retry/backoff shared by reads and writes; only the cap differs.
    max_retries: int = Field(3, validation_alias="HUBSPOT_MAX_RETRIES")
    retry_base_delay: float = Field(1.0, validation_alias="HUBSPOT_RETRY_BASE_DELAY")
    read_retry_max_delay: float = Field(10.0, validation_alias="HUBSPOT_READ_RETRY_MAX_DELAY")
    write_retry_max_delay: float = Field(5.0, validation_alias="HUBSPOT_WRITE_RETRY_MAX_DELAY")

    # Fixed pacing between successful calls (seconds)
    page_delay: float = Field(0.2, validation_alias="HUBSPOT_PAGE_DELAY")
    batch_delay: float = Field(0.5, validation_alias="HUBSPOT_BATCH_DELAY")
    property_batch_delay: float = Field(0.3, validation_alias="HUBSPOT_PROPERTY_BATCH_DELAY")
    maintenance_delay: float = Field(0.5, validation_alias="HUBSPOT_MAINTENANCE_DELAY")
    inter_list_delay_minutes: float = Field(3.0, validation_alias="HUBSPOT_INTER_LIST_DELAY_MINUTES")

    # Membership writes are chunked large-to-small; the last size repeats.
    membership_chunk_sizes: str = Field("300,100,50", validation_alias="HUBSPOT_MEMBERSHIP_CHUNK_SIZES")
    property_batch_size: int = Field(100, validation_alias="HUBSPOT_PROPERTY_BATCH_SIZE")

    # Over-fetch headroom used to absorb dedup filtering.
    overfetch_multiplier: int = Field(3, validation_alias="HUBSPOT_OVERFETCH_MULTIPLIER")
    overfetch_minimum: int = Field(500, validation_alias="HUBSPOT_OVERFETCH_MINIMUM")

    sent_date_property: str = Field(
        "recent_marketing_email_sent_date", validation_alias="HUBSPOT_SENT_DATE_PROPERTY"
    )
    brand_property: str = Field(
        "last_marketing_email_sent_brand", validation_alias="HUBSPOT_BRAND_PROPERTY"
    )
    legacy_id_property: str = Field("hs_classic_list_id", validation_alias="HUBSPOT_LEGACY_ID_PROPERTY")

    # Postgres tables backing campaign configs, created lists and run status.
    postgres_url: Optional[str] = Field(None, validation_alias="POSTGRES_URL")
    postgres_connect_timeout: int = Field(10, validation_alias="POSTGRES_CONNECT_TIMEOUT")
    segmentations_table: str = Field("segmentations", validation_alias="SEGMENTATIONS_TABLE")
    created_lists_table: str = Field("created_lists", validation_alias="CREATED_LISTS_TABLE")
    operation_status_table: str = Field("operation_status", validation_alias="OPERATION_STATUS_TABLE")

    @property
    def inter_campaign_delay(self) -> float:
        """Minimum spacing between campaign starts, in seconds."""
        return self.inter_list_delay_minutes * 60.0

    @property
    def chunk_sizes(self) -> Tuple[int, ...]:
        sizes = []
        for raw in self.membership_chunk_sizes.split(","):
            raw = raw.strip()
            if raw and int(raw) > 0:
                sizes.append(int(raw))
        return tuple(sizes) or (1,)

    def retry_policy(self, kind: str = "read") -> RetryPolicy:
        """Return the backoff policy for membership reads or writes."""
        max_delay = self.write_retry_max_delay if kind == "write" else self.read_retry_max_delay
        return RetryPolicy(
            max_attempts=self.max_retries,
            base_delay=self.retry_base_delay,
            max_delay=max_delay,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Using an accessor keeps imports cheap and avoids repeated parsing.
    """

    return Settings()  # type: ignore[call-arg]
