"""
terramap test suite.

Test Organization:
    - tests/conftest.py: Shared settings, context, registry and sample resources
    - tests/unit/test_*.py: Unit tests for individual modules and mapper families
"""
