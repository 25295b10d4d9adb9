"""
Core infrastructure: configuration, database, security, Redis, scheduling,
storage and email.
"""
