"""
BookLedger Test Suite

Tests are organized into:
- unit/: services, policy and repositories against a SQLite file per test
- integration/: the HTTP API through httpx's ASGI transport
"""
