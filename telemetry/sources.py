"""Telemetry sources: where metric-sample batches come from.

Every source exposes ``pull_metric_samples()``. Raw records use the
collector wire format (camelCase keys, ISO timestamps)::

    {"deviceId": "device-cpe-001", "providerId": "provider-1",
     "timestamp": "2024-05-01T12:00:00Z",
     "metrics": {"cpuUsage": 85, "ifOperStatus": {"1": "up", "2": "down"}},
     "events": {"polling_failed": false}}

snake_case keys are accepted too.
"""
import json
import logging
from pathlib import Path

import yaml

from alerts.errors import ValidationError, TelemetryError
from models.alerts import MetricSample
from utils.formatters import parse_timestamp
from utils.http_client import HTTPClient, APIError

logger = logging.getLogger("netalert.telemetry")


def _pick(raw, *keys):
    for k in keys:
        if raw.get(k) is not None:
            return raw[k]
    return None


def parse_sample(raw):
    """Validate one raw record into a MetricSample. Raises ValidationError."""
    if not isinstance(raw, dict):
        raise ValidationError(f"Sample must be a mapping, got {type(raw).__name__}")

    device_id = _pick(raw, "deviceId", "device_id")
    if not device_id:
        raise ValidationError("Sample is missing deviceId")
    provider_id = _pick(raw, "providerId", "provider_id")
    if not provider_id:
        raise ValidationError(f"Sample for {device_id} is missing providerId", device_id)

    try:
        timestamp = parse_timestamp(raw.get("timestamp"))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Sample for {device_id} has a bad timestamp: {e}", device_id)

    metrics = raw.get("metrics") or {}
    events = raw.get("events") or {}
    if not isinstance(metrics, dict) or not isinstance(events, dict):
        raise ValidationError(f"Sample for {device_id}: metrics/events must be mappings", device_id)

    # Interface keys arrive as ints from YAML and as strings from JSON
    normalized = {}
    for name, value in metrics.items():
        if isinstance(value, dict):
            value = {str(k): v for k, v in value.items()}
        normalized[str(name)] = value

    return MetricSample(
        device_id=str(device_id),
        provider_id=str(provider_id),
        customer_id=_pick(raw, "customerId", "customer_id"),
        pop_id=_pick(raw, "popId", "pop_id"),
        timestamp=timestamp,
        metrics=normalized,
        events=dict(events),
    )


def parse_samples(raw_samples):
    """Parse a batch, skipping (and logging) malformed records."""
    samples = []
    for raw in raw_samples:
        try:
            samples.append(parse_sample(raw))
        except ValidationError as e:
            logger.warning(f"Skipping invalid sample: {e}")
    return samples


class StaticTelemetrySource:
    """Returns the same in-memory batch on every pull."""

    def __init__(self, samples=None):
        self.samples = list(samples or [])

    def pull_metric_samples(self):
        return list(self.samples)


class FileTelemetrySource:
    """Reads a YAML or JSON batch file (``samples:`` list) on every pull."""

    def __init__(self, path):
        self.path = Path(path)

    def pull_metric_samples(self):
        try:
            with open(self.path) as f:
                if self.path.suffix == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise TelemetryError(f"Cannot read telemetry file {self.path}: {e}") from e

        raw = data.get("samples", []) if isinstance(data, dict) else (data or [])
        samples = parse_samples(raw)
        logger.debug(f"Read {len(samples)} samples from {self.path}")
        return samples


class HTTPTelemetrySource:
    """Pulls the current batch from a collector's JSON endpoint."""

    def __init__(self, base_url, endpoint="/samples", timeout=10, max_retries=2, client=None):
        self.endpoint = endpoint
        self.client = client or HTTPClient(base_url, timeout=timeout, max_retries=max_retries)

    def pull_metric_samples(self):
        try:
            data = self.client.get(self.endpoint)
        except (APIError, OSError) as e:
            raise TelemetryError(f"Telemetry collector unreachable: {e}") from e

        raw = data.get("samples", []) if isinstance(data, dict) else data
        if not isinstance(raw, list):
            raise TelemetryError(f"Unexpected telemetry payload: {type(raw).__name__}")
        return parse_samples(raw)


def build_source(config):
    tel_cfg = config.get("telemetry", {})
    kind = tel_cfg.get("source", "file")
    if kind == "http":
        return HTTPTelemetrySource(
            tel_cfg["url"],
            endpoint=tel_cfg.get("endpoint", "/samples"),
            timeout=tel_cfg.get("timeout", 10),
            max_retries=tel_cfg.get("max_retries", 2),
        )
    if kind == "file":
        return FileTelemetrySource(tel_cfg.get("path", "config/sample_metrics.yaml"))
    raise ValueError(f"Unknown telemetry source: {kind}")
