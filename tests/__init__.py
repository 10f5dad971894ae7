"""
aclstore test suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Tests against a real MongoDB (ACLSTORE_MONGO_TESTS=1)
"""
