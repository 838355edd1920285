"""
Repository layer for the reference API.

Holds the server-side copy of every dashboard resource.
"""
