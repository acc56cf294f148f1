"""Centralized gateway constants: single source of truth for hardcoded values."""

# --- Webhook delivery ---
MAX_DELIVERY_ATTEMPTS = 3
DELIVERY_TIMEOUT = 5  # seconds, per attempt
DELIVERY_BACKOFF_SECONDS = 1  # attempt N waits N * this before attempt N + 1
DELIVERED_RESPONSE = "Webhook delivered successfully"

# --- Payment decision ---
DEFAULT_SUCCESS_RATE = 0.8
MESSAGE_SUCCESS = "Payment processed successfully"
MESSAGE_FAILED = "Payment failed"

# --- HTTP Client ---
HTTP_TOTAL_TIMEOUT = 30  # seconds
HTTP_CONNECT_TIMEOUT = 5  # seconds
