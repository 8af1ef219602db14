"""
Gloss SDK Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Client tests over the in-memory record store
"""
