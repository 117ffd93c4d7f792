"""Domain errors raised by the service layer.

Each error carries the HTTP status it is rendered with by the handlers
registered in ``secondhand.api``.
"""


class MarketplaceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(MarketplaceError):
    status_code = 400


class UnauthorizedError(MarketplaceError):
    status_code = 401


class ForbiddenError(MarketplaceError):
    status_code = 403


class NotFoundError(MarketplaceError):
    status_code = 404


class ConflictError(MarketplaceError):
    """A unique constraint rejected the write."""

    status_code = 400
