"""Caching primitives: entity cache and policy constants."""
