"""auth/ -- Account enrollment, one-time-code login and session tokens for PasswordForge.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, web/, or vault/.
api/ and web/ import from auth/, not the other way around.
"""
