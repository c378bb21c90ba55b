"""Shared constants across the application."""

# Plan tiers and their monthly alert ceilings (None = unbounded).
# The trial ceiling is configurable, see Settings.trial_monthly_ceiling.
TRIAL_PLAN = "trial"

PLAN_MONTHLY_CEILINGS: dict[str, int | None] = {
    "basic": 100,
    "pro": 500,
    "custom": None,
}

PAID_PLANS = frozenset(PLAN_MONTHLY_CEILINGS)

# Storefront webhook topics
TOPIC_INVENTORY_LEVELS_UPDATE = "inventory_levels/update"
TOPIC_PRODUCTS_UPDATE = "products/update"
TOPIC_APP_UNINSTALLED = "app/uninstalled"

RESTOCK_TOPICS = frozenset({TOPIC_INVENTORY_LEVELS_UPDATE, TOPIC_PRODUCTS_UPDATE})

# Storefront webhook headers
HMAC_HEADER = "X-Shopify-Hmac-Sha256"
DELIVERY_ID_HEADER = "X-Shopify-Webhook-Id"
TOPIC_HEADER = "X-Shopify-Topic"
ACCOUNT_HEADER = "X-Shopify-Shop-Domain"

# Inbound replies that count as "send me the link"
AFFIRMATIVE_REPLIES = frozenset({"yes", "y", "send", "link", "ok", "sure", "go"})

WHATSAPP_PREFIX = "whatsapp:"

# Default limits
DEFAULT_LISTING_LIMIT = 20
MAX_LISTING_LIMIT = 200
