"""Synchronization engine.

This package mirrors a remote two-column table in memory and keeps
the key to row-position index consistent with every mutation.
"""
