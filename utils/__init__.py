"""Utility modules for NetAlert."""
from utils.logger import setup_logging
from utils.formatters import parse_timestamp, format_iso, format_timestamp, format_alert_message, time_ago
from utils.http_client import HTTPClient, APIError
