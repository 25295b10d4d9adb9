"""
Paperly API - exam question paper submission, review and payment tracking.
"""
