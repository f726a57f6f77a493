"""
membership - Multi-tenant account lifecycle management.

Registration with verification, authentication with lockout, password
reset and email change, each gated by single-use keys.
"""

__version__ = "0.1.0"
