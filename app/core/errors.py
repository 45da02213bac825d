"""
Order Service Error Taxonomy

Every failure a client can cause is raised as one of these exceptions and
translated into a JSON error response by the handlers in ``app.main``.
"""


class OrderServiceError(Exception):
    """Base class for client-facing errors."""

    code = "error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "error": self.code, "message": self.message}


class InvalidInput(OrderServiceError):
    """Missing or malformed request fields."""
    code = "invalid_input"
    status_code = 400


class NotFound(OrderServiceError):
    """Referenced restaurant, menu item, user or order is absent."""
    code = "not_found"
    status_code = 404


class Forbidden(OrderServiceError):
    """Actor lacks the relationship or role required for the action."""
    code = "forbidden"
    status_code = 403


class AmountMismatch(OrderServiceError):
    """Client total disagrees with the server-computed total."""
    code = "amount_mismatch"
    status_code = 400

    def __init__(self, message: str, expected: float, received: float):
        super().__init__(message)
        self.expected = expected
        self.received = received

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["expected"] = self.expected
        data["received"] = self.received
        return data


class ConflictOfState(OrderServiceError):
    """Transition not valid from the order's current state."""
    code = "conflict_of_state"
    status_code = 409


class Unauthenticated(OrderServiceError):
    """No valid credentials on the request."""
    code = "unauthenticated"
    status_code = 401
