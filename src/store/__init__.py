"""Versioned storage layer.

This package tags DynamoDB keys with snapshot ids and keeps the
snapshot metadata record that drives reads, writes, and rollbacks.
"""
