"""Centralized billing constants: single source of truth for hardcoded values."""

# --- Payment gateway contract ---
PAYMENT_INITIATE_PATH = "/payments/initiate"
PAYMENT_DELIVERIES_PATH = "/payments/deliveries/{subscription_id}"
PAYMENT_WEBHOOK_PATH = "/webhooks/payment"

# --- HTTP Client ---
HTTP_TOTAL_TIMEOUT = 30  # seconds
HTTP_CONNECT_TIMEOUT = 5  # seconds

# --- Auth ---
TOKEN_TYPE = "bearer"

# --- Webhooks ---
SUBSCRIPTION_NOT_FOUND = "Subscription not found"
