"""Persistence schema for Ascendant."""
