"""Database repositories for the ACC admin service."""
