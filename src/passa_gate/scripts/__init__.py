"""Maintenance command line tools."""
