"""Configuration and infrastructure wiring."""
