"""Helpdesk ticket tracking service."""
