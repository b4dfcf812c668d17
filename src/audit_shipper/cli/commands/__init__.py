"""audit-shipper subcommands."""
