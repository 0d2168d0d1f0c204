"""Query keys for the client cache."""

EXPENSES_KEY = ("expenses",)


def expense_key(expense_id: int) -> tuple:
    """Detail key of one expense."""
    return ("expenses", expense_id)
