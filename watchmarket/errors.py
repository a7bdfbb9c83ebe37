from fastapi import Request, status
from fastapi.responses import JSONResponse


class AppError(Exception):
    """Domain error rendered as ``{"detail": ..., "code": ...}``."""

    code = "AppError"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request failed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ListingNotAvailable(AppError):
    code = "ListingNotAvailable"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Listing is not available"


class InvalidAmount(AppError):
    code = "InvalidAmount"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Invalid amount"


class InvalidTransition(AppError):
    code = "InvalidTransition"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Invalid transition"

    def __init__(self, current: str, action: str):
        self.current = current
        self.action = action
        super().__init__(f"Cannot {action} a bid in status {current}")


class NoOpTransition(AppError):
    code = "NoOpTransition"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Counter amount must differ from the current amount"


class ForbiddenActor(AppError):
    code = "ForbiddenActor"
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Not allowed for this user"


class DuplicateActiveBid(AppError):
    code = "DuplicateActiveBid"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "You already have an open bid on this listing"


class NotAccepted(AppError):
    code = "NotAccepted"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Bid must be accepted to add to cart"


class AlreadyConsumed(AppError):
    code = "AlreadyConsumed"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Bid has already been added to a cart"


class AlreadyInCart(AppError):
    code = "AlreadyInCart"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Watch already in cart"


class CartFull(AppError):
    code = "CartFull"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Cart is full"


class NotFound(AppError):
    code = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class Conflict(AppError):
    code = "Conflict"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Bid was modified concurrently; reload and retry"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "code": exc.code})
