"""Database infrastructure for the petty cash kernel."""
