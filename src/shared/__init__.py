"""Shared utilities used across inkpress domains."""
