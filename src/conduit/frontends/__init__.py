"""Frontends - user interfaces on top of conduit.core."""
