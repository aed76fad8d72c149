"""
Pinboard Backend — Application Package
========================================

Layered like this:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← cookies, status codes
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← toggles, feed, pin creation
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

Entry point: pinboard.main:app (uvicorn), or create_app(settings) in tests.
"""

__version__ = "1.0.0"
