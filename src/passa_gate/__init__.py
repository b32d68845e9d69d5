"""Ticket credential issuance, gate verification and dual-key escrow release."""

__version__ = "0.1.0"
