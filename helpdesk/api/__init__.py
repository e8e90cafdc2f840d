"""HTTP API for the helpdesk service."""
