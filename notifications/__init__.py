"""Outbound delivery transports (SMTP, HTTP gateways)."""
