from __future__ import annotations

from typing import Any, Dict, List, Optional


class BudgetError(Exception):
    """Base class for budget domain errors."""

    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_detail(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationError(BudgetError):
    def __init__(self, message: str, details: Optional[List[Dict[str, str]]] = None) -> None:
        super().__init__(message)
        self.details = details or []

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, [{"field": field, "message": message}])

    def to_detail(self) -> Dict[str, Any]:
        return {"error": self.message, "details": self.details}


class DuplicateBudgetError(BudgetError):
    status_code = 409

    def __init__(self, message: str = "A budget already exists for this category and period", existing_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.existing_id = existing_id

    def to_detail(self) -> Dict[str, Any]:
        detail: Dict[str, Any] = {"error": self.message}
        if self.existing_id is not None:
            detail["existing_id"] = self.existing_id
        return detail


class NotFoundError(BudgetError):
    status_code = 404

    def __init__(self, message: str = "Budget not found") -> None:
        super().__init__(message)


class BudgetStateError(BudgetError):
    """Operation not allowed in the budget's current active/inactive state."""


class InvalidBudgetConfiguration(BudgetError):
    """Stored budget violates its own invariants (e.g. non-positive limit)."""

    status_code = 500
