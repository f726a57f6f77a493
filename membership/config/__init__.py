"""Configuration - Environment-driven application settings."""
