"""Pipeline stages and the import session."""
