"""Order and stock errors.

Raised by the order/stock core and rendered by the API layer as an
``ErrorResponse`` with the carried HTTP status.
"""
from fastapi import status


class StorefrontError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def code(self) -> str:
        return type(self).__name__


class EmptyCart(StorefrontError):
    def __init__(self):
        super().__init__("Cart is empty")


class ProductNotFound(StorefrontError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, product_name: str):
        super().__init__(f"Product not found: {product_name}")
        self.product_name = product_name


class InsufficientStock(StorefrontError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, product_name: str):
        super().__init__(f"Insufficient stock for product: {product_name}")
        self.product_name = product_name


class InvalidStatus(StorefrontError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, value, message: str = None):
        super().__init__(message or f"Invalid order status: {value}")
        self.value = value


class InvalidTransition(InvalidStatus):
    """Known status, but not reachable from the order's current status."""

    def __init__(self, from_status, to_status):
        super().__init__(
            to_status,
            f"Cannot move order from {from_status} to {to_status}",
        )
        self.from_status = from_status
        self.to_status = to_status


class OrderNotFound(StorefrontError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, order_id: str):
        super().__init__(f"Order not found: {order_id}")
        self.order_id = order_id


class TransactionFailed(StorefrontError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, attempts: int):
        super().__init__(f"Transaction could not be committed after {attempts} attempts")
        self.attempts = attempts


class CommitUncertain(TransactionFailed):
    """The store lost the commit result, so replaying could apply the writes twice."""

    def __init__(self, attempts: int):
        StorefrontError.__init__(
            self, f"Transaction outcome unknown after {attempts} attempts, it may have been committed"
        )
        self.attempts = attempts


class CompensationFailed(StorefrontError):
    # The status change is already persisted when this is raised.
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, order_id: str, reason: str = ""):
        message = f"Order {order_id} status was updated but stock restoration failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.order_id = order_id
