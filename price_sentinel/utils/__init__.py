"""
Shared utilities: structured logging, error tracking and rate limiting.
"""
