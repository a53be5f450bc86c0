"""Value types and database models."""
