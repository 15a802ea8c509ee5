"""
EntMap Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Integration tests (EntityManager over the in-memory backend)
- e2e/: End-to-end tests (DynamoDB Local)
"""
