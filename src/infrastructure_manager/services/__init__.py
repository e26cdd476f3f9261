"""Clients for the systems the operator talks to."""
