# tests/services/__init__.py
