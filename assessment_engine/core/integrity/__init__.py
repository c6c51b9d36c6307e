"""
Integrity event taxonomy and security log aggregation.
"""
