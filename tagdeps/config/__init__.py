"""Configuration file schemas and parsing."""
