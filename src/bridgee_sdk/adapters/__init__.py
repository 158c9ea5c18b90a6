"""Adapters for the platform referrer service and the match API."""
