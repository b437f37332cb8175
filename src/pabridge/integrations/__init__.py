"""Outbound integrations: the remote state API client."""
