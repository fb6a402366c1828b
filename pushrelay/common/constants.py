class PushConstants:
    """Push delivery settings."""

    # Substrings of provider error codes that mean the token is gone for good
    DEAD_TOKEN_CODE_MARKERS = (
        "registration-token-not-registered",
        "invalid-registration-token",
    )

    ANDROID_PRIORITY_HIGH = "high"


class EventNames:
    """Event names understood on the event bus."""

    SEND_USER_NOTIFICATION = "SendUserNotification"


class EventBusDefaults:
    """Consumer loop settings."""

    MESSAGE_FIELD = "value"
    READ_COUNT = 1
    BLOCK_MS = 5000


class InfoMessages:
    """Informational messages returned alongside empty results."""

    NO_TOKENS_FOR_USER = "No tokens for user"
    NO_ACTIVE_USERS = "No active users"


class ErrorMessages:
    """Common error messages."""

    INTERNAL_ERROR = "Internal server error"
    VALIDATION_ERROR = "Validation error"


class DeviceLimits:
    """Bounds of the device table columns."""

    # user_id and game_id are BIGINT
    BIGINT_MAX = 2**63 - 1
