"""
Shared utilities for the Book Directory API.
"""
