class BudgetingError(ValueError):
    """Base class for rejected ledger and budgeting operations."""


class InvalidOwnerError(BudgetingError):
    """Owner reference does not resolve to exactly one existing user or group."""


class InvalidAmountError(BudgetingError):
    """Amount is non-finite, too large, or not representable at 2 decimal places."""


class DuplicateBudgetError(BudgetingError):
    """A monthly budget already exists for the owner and month."""


class NotFoundError(BudgetingError):
    entity = "Record"

    def __init__(self, entity_id: int | None, detail: str | None = None):
        self.entity_id = entity_id
        super().__init__(detail or f"{self.entity} with id {entity_id} not found")


class UnknownAccountError(NotFoundError):
    entity = "Account"


class UnknownBudgetError(NotFoundError):
    entity = "Budget"


class UnknownGoalError(NotFoundError):
    entity = "Savings goal"


class UnknownCategoryError(NotFoundError):
    entity = "Category"


class UnknownOneOffBudgetError(NotFoundError):
    entity = "One-off budget"


class UnknownLineItemError(NotFoundError):
    entity = "Budget line item"


class RecomputationError(BudgetingError):
    """A single goal failed during a batch progress recomputation."""

    def __init__(self, goal_id: int, cause: BaseException):
        self.goal_id = goal_id
        self.cause = cause
        super().__init__(
            f"Savings goal {goal_id} recomputation failed: "
            f"{type(cause).__name__}: {cause}"
        )
