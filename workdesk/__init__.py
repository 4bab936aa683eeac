"""Workdesk priority scoring and load-balanced assignment service."""
