"""
Tokens module - submission links and single-use reset/verification tokens.
"""
