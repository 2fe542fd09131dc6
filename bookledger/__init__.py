"""
BookLedger

Library catalog and lending service:
- catalog: books, copy counts, search and statistics
- circulation: borrow/return lifecycle and loan policy
- users: member and admin accounts
- storage: SQLAlchemy models, database and repositories
- api: FastAPI application
"""

__version__ = "1.0.0"
