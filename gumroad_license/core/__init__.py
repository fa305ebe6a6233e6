"""Core configuration, models and services."""
