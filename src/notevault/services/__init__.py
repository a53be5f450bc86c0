"""Services orchestrating the repositories."""
