"""Command line interface for the audit shipper."""
