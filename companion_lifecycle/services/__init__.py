# companion_lifecycle/services/__init__.py
