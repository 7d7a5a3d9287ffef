from fastapi import HTTPException, status

from app.exceptions import (
    AuthenticationRequiredError,
    ConnectionFlowError,
    InvalidPendingTokenError,
    InvitationDeliveryError,
    ProfileNotPublicError,
    RateLimitExceededError,
    RequestNotFoundError,
    RequestStateConflictError,
)

def to_http_exception(error: Exception) -> HTTPException:
    """Map a domain error raised by a service to the HTTP error returned to the client."""
    if isinstance(error, AuthenticationRequiredError):
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(error))
    if isinstance(error, ProfileNotPublicError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(error))
    if isinstance(error, RequestNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, RequestStateConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, InvitationDeliveryError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(error))
    if isinstance(error, RateLimitExceededError):
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(error),
            headers={"Retry-After": str(error.retry_after_seconds)}
        )
    if isinstance(error, (InvalidPendingTokenError, ValueError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, ConnectionFlowError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")
