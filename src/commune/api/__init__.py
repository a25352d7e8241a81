"""HTTP API for the Commune application."""
