"""Remote collaborators of the store.

This package defines the authorization and remote table capabilities
the store depends on, plus Google Sheets implementations of both.
"""
