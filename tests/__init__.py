"""GBP-Sync Test Suite.

This package contains unit and integration tests for the GBP-Sync project.

Test Structure:
- unit/: Unit tests for individual functions and classes
- integration/: Integration tests against a real PostgreSQL database
- stubs.py: In-memory stand-ins for the database, publisher and provider
"""

__version__ = "0.1.0"
