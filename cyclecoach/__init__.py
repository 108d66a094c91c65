"""Training cycle timeline and generation queue service."""
