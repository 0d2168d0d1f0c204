"""
API server for Expense Tracker

Run with:
    uvicorn app.main:app --reload

Configuration comes from the environment and .env (see
expense_tracker.config). With no configuration at all the API runs
unauthenticated on the in-memory record store, which is what local
development wants; the object store must be configured for receipts.
"""

import uvicorn

from expense_tracker.api import create_app
from expense_tracker.config import get_settings


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().app.debug_mode,
    )
