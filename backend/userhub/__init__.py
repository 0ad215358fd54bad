"""
Userhub Backend — Application Package Initializer
=================================================

What: Marks the `userhub` directory as a Python package.
Why:  Enables module imports like `from userhub.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend follows the same layered layout for every feature:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Intake, transform, profile updates
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Database / Blob Store (Storage)   │  ← Injected per app instance
    └─────────────────────────────────────┘

    The image ingestion pipeline runs top to bottom through the services layer:
    UploadService → ImageService → BlobStore → ProfileService.
"""

__version__ = "1.0.0"
