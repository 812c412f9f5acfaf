"""Core configuration, errors and component wiring."""
