"""Order service configuration."""

from datetime import timedelta
from decimal import Decimal

from libs.oms_shared.config import BaseServiceConfig
from pydantic import Field

from .analytics import AnalyticsSettings
from .discounts import DiscountRules
from .models import CustomerSegment


class OrderConfig(BaseServiceConfig):
    """Order service specific configuration."""

    port: int = Field(8002, validation_alias="PORT")

    # Seed data - absolute path for Docker, relative for local
    customers_data_path: str = Field(
        "data/customers.csv",
        validation_alias="CUSTOMERS_DATA_PATH",
        description="Path to customers seed CSV",
    )
    products_data_path: str = Field(
        "data/products.csv",
        validation_alias="PRODUCTS_DATA_PATH",
        description="Path to products seed CSV",
    )

    # Analytics cache windows
    analytics_freshness_minutes: int = Field(
        5,
        ge=0,
        validation_alias="ANALYTICS_FRESHNESS_MINUTES",
        description="Trust the all-time snapshot this long after the last mutation",
    )
    analytics_ttl_minutes: int = Field(
        15,
        ge=0,
        validation_alias="ANALYTICS_TTL_MINUTES",
        description="Absolute lifetime of the all-time snapshot",
    )
    analytics_past_period_ttl_hours: int = Field(
        24, ge=0, validation_alias="ANALYTICS_PAST_PERIOD_TTL_HOURS"
    )
    analytics_current_period_ttl_minutes: int = Field(
        30, ge=0, validation_alias="ANALYTICS_CURRENT_PERIOD_TTL_MINUTES"
    )

    # Discount policy
    discount_new_rate: Decimal = Field(
        Decimal("0.10"), ge=0, validation_alias="DISCOUNT_NEW_RATE"
    )
    discount_standard_rate: Decimal = Field(
        Decimal("0.05"), ge=0, validation_alias="DISCOUNT_STANDARD_RATE"
    )
    discount_premium_rate: Decimal = Field(
        Decimal("0.15"), ge=0, validation_alias="DISCOUNT_PREMIUM_RATE"
    )
    discount_loyalty_threshold: int = Field(
        5, ge=0, validation_alias="DISCOUNT_LOYALTY_THRESHOLD"
    )
    discount_loyalty_rate: Decimal = Field(
        Decimal("0.05"), ge=0, validation_alias="DISCOUNT_LOYALTY_RATE"
    )
    discount_volume_threshold: Decimal = Field(
        Decimal("500"), ge=0, validation_alias="DISCOUNT_VOLUME_THRESHOLD"
    )
    discount_volume_rate: Decimal = Field(
        Decimal("0.03"), ge=0, validation_alias="DISCOUNT_VOLUME_RATE"
    )
    discount_max_rate: Decimal = Field(
        Decimal("0.25"), ge=0, le=1, validation_alias="DISCOUNT_MAX_RATE"
    )

    def analytics_settings(self) -> AnalyticsSettings:
        return AnalyticsSettings(
            freshness_window=timedelta(minutes=self.analytics_freshness_minutes),
            absolute_ttl=timedelta(minutes=self.analytics_ttl_minutes),
            past_period_ttl=timedelta(hours=self.analytics_past_period_ttl_hours),
            current_period_ttl=timedelta(
                minutes=self.analytics_current_period_ttl_minutes
            ),
        )

    def discount_rules(self) -> DiscountRules:
        return DiscountRules(
            segment_rates={
                CustomerSegment.NEW: self.discount_new_rate,
                CustomerSegment.STANDARD: self.discount_standard_rate,
                CustomerSegment.PREMIUM: self.discount_premium_rate,
            },
            loyalty_order_threshold=self.discount_loyalty_threshold,
            loyalty_rate=self.discount_loyalty_rate,
            volume_threshold=self.discount_volume_threshold,
            volume_rate=self.discount_volume_rate,
            max_total_rate=self.discount_max_rate,
        )


# Singleton instance
config = OrderConfig()
