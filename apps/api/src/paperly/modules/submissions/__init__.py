"""
Submissions module - question paper submissions, review and payment.
"""
