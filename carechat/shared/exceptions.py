from fastapi import HTTPException, status


class CredentialsException(HTTPException):
    """Missing, invalid or expired identity credential."""

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class NotFoundException(HTTPException):
    """Exception for resource not found."""

    def __init__(self, detail: str = "Resource not found"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
        )


class BadRequestException(HTTPException):
    """Exception for bad request."""

    def __init__(self, detail: str = "Bad request"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )


class ForbiddenException(HTTPException):
    """Exception for forbidden access."""

    def __init__(self, detail: str = "Forbidden", headers: dict = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            headers=headers,
        )


class ConversationLockedException(ForbiddenException):
    """Posting into a conversation whose booking report has been uploaded."""

    DETAIL = "This conversation is locked. The report has been uploaded and the booking is complete."

    def __init__(self):
        super().__init__(detail=self.DETAIL, headers={"X-Conversation-Locked": "true"})
