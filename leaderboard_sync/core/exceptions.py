from fastapi import HTTPException, status


class ConnectorError(Exception):
    """Base for errors raised while talking to an upstream platform.

    ``detail`` and ``status_code`` hold the raw upstream context. They are meant
    for logs and the orchestrator only, never for API responses.
    """

    def __init__(self, message: str, status_code: int | None = None, detail: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class AuthenticationError(ConnectorError):
    pass


class UpstreamUnavailable(ConnectorError):
    pass


class UnsupportedConnectionType(ConnectorError):
    def __init__(self, connection_type: str = ""):
        super().__init__(f"Unsupported connection type: {connection_type!r}")
        self.connection_type = connection_type


class PartialDataError(ConnectorError):
    def __init__(self, account_id: str, message: str, status_code: int | None = None):
        super().__init__(message, status_code=status_code)
        self.account_id = account_id


class LeaderboardServiceError(HTTPException):
    def __init__(self, detail: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(status_code=status_code, detail=detail)


class TraderNotFoundError(LeaderboardServiceError):
    def __init__(self):
        super().__init__(detail="Trader not found", status_code=status.HTTP_404_NOT_FOUND)


class DuplicateTraderError(LeaderboardServiceError):
    def __init__(self):
        super().__init__(
            detail="This username is already registered",
            status_code=status.HTTP_409_CONFLICT,
        )


class ConnectionTypeNotSupportedError(LeaderboardServiceError):
    def __init__(self, connection_type: str = ""):
        detail = (
            f"Connection type '{connection_type}' not supported"
            if connection_type else "Connection type not supported"
        )
        super().__init__(detail=detail, status_code=status.HTTP_400_BAD_REQUEST)


class CredentialsInvalidError(LeaderboardServiceError):
    def __init__(self, connection_type: str = ""):
        detail = (
            f"Invalid {connection_type} credentials. Please check and try again."
            if connection_type else "Invalid credentials"
        )
        super().__init__(detail=detail, status_code=status.HTTP_401_UNAUTHORIZED)


class ReauthNotSupportedError(LeaderboardServiceError):
    def __init__(self):
        super().__init__(
            detail="Re-authentication is only needed for Tradovate connections",
            status_code=status.HTTP_400_BAD_REQUEST,
        )


class SyncUnauthorizedError(LeaderboardServiceError):
    def __init__(self):
        super().__init__(detail="Unauthorized", status_code=status.HTTP_401_UNAUTHORIZED)


class SyncFailedError(LeaderboardServiceError):
    def __init__(self):
        super().__init__(detail="Sync failed for this trader")
