"""Unit tests for the TWX web layer.

Structure:
    tests/unit/web/
    ├── test_auth.py           # Session store and actor resolution
    ├── test_dependencies.py   # Path parameter dependencies
    └── test_models.py         # Request bodies and aliases

Route behaviour end to end is covered in tests/integration/test_api.py.
"""
