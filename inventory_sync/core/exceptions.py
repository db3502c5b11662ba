"""
Exception hierarchy for the inventory sync service.

All exceptions inherit from InventorySyncError and carry structured error
information for consistent handling and logging. Expected Steam failures are
NOT exceptions: the inventory client returns them as FetchFailure values.
"""
from typing import Any, Dict, Optional


class InventorySyncError(Exception):
    """
    Base exception for all inventory sync errors.

    Attributes:
        status_code: HTTP status code for API responses
        error_code: Machine-readable error code
        detail: Human-readable error message
        context: Additional context (user_id, steam_id, ...)
    """

    def __init__(
        self,
        detail: str,
        status_code: int = 500,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for JSON responses."""
        return {
            "error": {
                "code": self.error_code,
                "message": self.detail,
                "context": self.context,
            }
        }


class UserNotFoundError(InventorySyncError):
    """Internal user id does not resolve to a known user."""

    def __init__(
        self,
        user_id: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            detail=f"User {user_id} not found",
            status_code=404,
            error_code="USER_NOT_FOUND",
            context={"user_id": user_id, **(context or {})},
        )


class SnapshotNotFoundError(InventorySyncError):
    """User has never synced, so there is no stored inventory to read."""

    def __init__(
        self,
        user_id: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            detail=f"No inventory found for user {user_id}",
            status_code=404,
            error_code="INVENTORY_NOT_FOUND",
            context={"user_id": user_id, **(context or {})},
        )


class DatabaseError(InventorySyncError):
    """Database operation error. Raised after the transaction was rolled back."""

    def __init__(
        self,
        detail: str,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            detail=detail,
            status_code=500,
            error_code="DATABASE_ERROR",
            context={"operation": operation, **(context or {})},
        )


class ConfigurationError(InventorySyncError):
    """Configuration error."""

    def __init__(
        self,
        detail: str,
        setting: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            detail=detail,
            status_code=500,
            error_code="CONFIGURATION_ERROR",
            context={"setting": setting, **(context or {})},
        )


class SteamAPIError(InventorySyncError):
    """
    Steam failure surfaced outside the sync result flow.

    The background refresh task raises it for transient outcomes so Celery
    can schedule a retry.
    """

    def __init__(
        self,
        detail: str,
        status_code: int = 502,  # Bad Gateway
        error_code: str = "STEAM_API_ERROR",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(detail, status_code, error_code, context)


class SteamRateLimitError(SteamAPIError):
    """Steam kept answering 429 after every retry."""

    def __init__(
        self,
        detail: str = "Steam rate limit exceeded",
        user_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            detail=detail,
            status_code=429,
            error_code="RATE_LIMITED",
            context={"user_id": user_id, **(context or {})},
        )
