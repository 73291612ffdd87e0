from decimal import Decimal


class DomainError(Exception):
    """Base exception for domain errors."""

    message: str

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class UnauthorizedError(DomainError):
    """Raised when the caller has no valid session."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class ForbiddenError(DomainError):
    """Raised when the caller lacks the role an operation requires."""

    def __init__(self, required_role: str) -> None:
        self.required_role = required_role
        super().__init__(f"This operation requires the {required_role} role")


class PayoutValidationError(DomainError):
    """Raised when payout input fields are malformed or missing."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = errors
        super().__init__(f"Invalid fields: {', '.join(sorted(errors))}")


class NotFoundError(DomainError):
    """Base for referenced records that do not exist or are not owned by the caller."""


class SellerNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"No seller record found for user {user_id}")


class BankAccountNotFoundError(NotFoundError):
    def __init__(self, bank_account_id: str, seller_id: str) -> None:
        self.bank_account_id = bank_account_id
        self.seller_id = seller_id
        super().__init__(f"Bank account {bank_account_id} not found for seller {seller_id}")


class PayoutNotFoundError(NotFoundError):
    def __init__(self, payout_id: str) -> None:
        self.payout_id = payout_id
        super().__init__(f"Payout request {payout_id} not found")


class InsufficientBalanceError(DomainError):
    """Raised when a payout amount exceeds the seller's current balance."""

    def __init__(self, seller_id: str, requested: Decimal, available: Decimal) -> None:
        self.seller_id = seller_id
        self.requested = requested
        self.available = available
        super().__init__(f"Insufficient balance: requested {requested}, available {available}")


class StoreFailureError(DomainError):
    """Raised when the data store fails for reasons other than a missing row."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Data store failure during {operation}")


class LedgerIntegrityError(DomainError):
    """Raised when a ledger snapshot disagrees with the replayed entry history."""

    def __init__(self, entry_id: str, expected: Decimal, actual: Decimal) -> None:
        self.entry_id = entry_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Ledger entry {entry_id} has balance_after_transaction {actual}, expected {expected}"
        )
