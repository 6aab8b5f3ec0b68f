"""Shared helpers for keyscreen."""
