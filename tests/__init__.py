"""
YADS test suite.

Unit tests run every manager against a recording command runner, so no test
needs root, Docker or network access.
"""
