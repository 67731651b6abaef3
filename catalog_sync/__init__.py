"""Synchronize a product catalog store with a CSV desired-state snapshot."""
