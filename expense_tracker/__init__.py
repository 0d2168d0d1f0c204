"""
Expense Tracker - Source Package

An expense-tracking service with receipt attachments: a JSON API over a
record store and an S3-compatible object store, plus an asyncio client that
keeps an optimistic cache of the expense collection.

PRINCIPLES:
1. Validate at the boundary, before any store is touched
2. Signed URLs are derived on every read, never persisted
3. Optimistic client state always has a rollback path
4. Every mutation is auditable
5. Storage, object store and identity provider are swappable
"""

__version__ = "1.0.0"
__author__ = "Expense Tracker Team"
