"""Sync failure taxonomy.

Credential problems stop the account and tell the user to reconnect; API
problems are either transient (retried, then recorded against a chunk) or
permanent (recorded immediately); quota exhaustion stops the run without
being treated as an error.
"""


class SyncError(Exception):
    """Base class for every failure raised by the sync pipeline."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# ============== Credentials ==============

class CredentialError(SyncError):
    """The account must reconnect the platform before syncing again."""


class NoConnection(CredentialError):
    def __init__(self, account_id: str, platform: str):
        super().__init__(f"No {platform} connection for account {account_id}; reconnect required")
        self.account_id = account_id
        self.platform = platform


class RefreshUnavailable(CredentialError):
    def __init__(self, platform: str):
        super().__init__(f"{platform} token expired and no refresh token is stored; reconnect required")
        self.platform = platform


class RefreshFailed(CredentialError):
    """Token endpoint rejected the refresh. Body is kept verbatim."""

    def __init__(self, status_code: int | None, body: str):
        super().__init__(f"Failed to refresh token: {status_code} - {body}")
        self.status_code = status_code
        self.body = body


# ============== Quota ==============

class QuotaExceeded(SyncError):
    def __init__(self, account_id: str, current_usage: int, limit: int):
        super().__init__(
            f"Daily API quota nearly exhausted for account {account_id} "
            f"({current_usage}/{limit} units); sync stopped until the quota resets"
        )
        self.account_id = account_id
        self.current_usage = current_usage
        self.limit = limit


# ============== Upstream API ==============

class APIError(SyncError):
    def __init__(self, status_code: int | None, body: str):
        label = status_code if status_code is not None else "network error"
        super().__init__(f"API error {label}: {body}")
        self.status_code = status_code
        self.body = body


class TransientAPIError(APIError):
    """5xx or network failure that survived every retry."""


class PermanentAPIError(APIError):
    """4xx response; never retried."""


class MalformedResponseError(APIError):
    """2xx response whose body is not JSON. Body is kept for the raw archive."""


# ============== Storage ==============

class PersistenceError(SyncError):
    """Write rejected by the database."""
