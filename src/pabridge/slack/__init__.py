"""Slack integration: event handlers, Web API wrapper, rendering."""
