"""
rulegate test suite.

This package contains tests for the rulegate core:
- Identifier, state and event tests
- Access control and permission resolution tests
- Rule module and dispatch tests
- Default slot and extra data tests
- Primitive tests
"""
