"""Concrete collaborators: metadata files, key files, HTTP, session cache."""
