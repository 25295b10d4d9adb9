"""
Teachers module - invited teachers and their submission links.
"""
