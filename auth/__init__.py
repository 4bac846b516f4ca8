"""auth/ -- Authentication and authorization package for the inventory API.

Credential Store (store.py), password hashing and session tokens (tokens.py),
TOTP (totp.py), and the Authorization Gate (dependencies.py).

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, audit/, or inventory/.
api/ imports from auth/, not the other way around.
"""
