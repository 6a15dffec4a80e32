"""SQL migrations for the state database."""
