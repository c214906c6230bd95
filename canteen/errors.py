"""
Domain errors. Each one carries the HTTP status it is reported with.
"""


class CanteenError(Exception):
    status_code = 400
    message = "Request could not be processed"

    def __init__(self, message: str = None):
        super().__init__(message or self.message)

    @property
    def detail(self) -> str:
        return str(self)


class EmptyCartError(CanteenError):
    message = "Cart is empty"


class InvalidCartError(CanteenError):
    message = "Cart contains an invalid item"


class UnknownStatusError(CanteenError):
    message = "Unknown order status"


class InvalidTransitionError(CanteenError):
    status_code = 409

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move order from {_label(current)} to {_label(requested)}")


class OrderNotFoundError(CanteenError):
    status_code = 404

    def __init__(self, order_id: int):
        self.order_id = order_id
        super().__init__(f"Order #{order_id} not found")


class OrderPlacementError(CanteenError):
    status_code = 500
    message = "Could not place order, please try again"


class UsernameTakenError(CanteenError):
    status_code = 409
    message = "Username already exists"


class AuthenticationError(CanteenError):
    status_code = 401
    message = "Invalid credentials"


def _label(status) -> str:
    return getattr(status, "value", status)
