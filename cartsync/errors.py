"""
Common Error Constants and Exceptions

Centralized error messages to avoid string duplication (SonarQube S1192).
"""

# Cart entry validation
ERROR_INVALID_ITEM_ID = "item_id must be a non-empty string"
ERROR_INVALID_QUANTITY = "quantity must be a positive integer"
ERROR_NEGATIVE_QUANTITY = "quantity must be a non-negative integer"
ERROR_INVALID_ENTRY = "cart entry must be a CartEntry"

# Storage
ERROR_LOCAL_STORE_UNAVAILABLE = "Local cart store unavailable"
ERROR_REMOTE_STORE_UNAVAILABLE = "Remote cart store unavailable"

# Request errors
ERROR_DEVICE_ID_REQUIRED = "X-Device-Id header is required"
ERROR_UNAUTHORIZED = "Unauthorized"


class CartStoreError(Exception):
    """The local ephemeral store rejected a write (quota, connection, ...)."""
