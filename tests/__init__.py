"""PMP Tests.

Test organization:
- unit/: Fast unit tests, no external dependencies

Run tests with pytest:
    pytest tests/unit/ -v
"""
