"""Core services: fetching, installed state, registry and installation."""
