"""Packaged profile database."""
