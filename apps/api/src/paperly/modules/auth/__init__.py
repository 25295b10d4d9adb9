"""
Auth module - registration, login, sessions and account recovery.
"""
