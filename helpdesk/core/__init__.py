"""Configuration and logging for the helpdesk API."""
