"""Command-line interface and rich status panels."""
