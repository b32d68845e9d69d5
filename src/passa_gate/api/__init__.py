"""HTTP API for the Passa gate service."""
