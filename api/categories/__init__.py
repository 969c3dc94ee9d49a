"""
Category lookups (read-only).
"""
