"""Shell adapters — run host commands."""
