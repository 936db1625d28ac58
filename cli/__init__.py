"""Command line interface for onelnn."""
