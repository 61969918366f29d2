"""Tests for telemetry parsing and sources."""
import json
from unittest.mock import MagicMock

import pytest
import yaml

from alerts.errors import ValidationError, TelemetryError
from telemetry.sources import (
    parse_sample, parse_samples, FileTelemetrySource, HTTPTelemetrySource,
    StaticTelemetrySource, build_source,
)
from utils.http_client import APIError
from conftest import BASE_TIME


RAW = {
    "deviceId": "device-core-01",
    "providerId": "provider-1",
    "popId": "pop-central",
    "timestamp": "2024-05-01T12:00:00Z",
    "metrics": {"cpuUsage": 92, "ifOperStatus": {1: "up", 2: "down"}},
    "events": {"polling_failed": False},
}


def test_parse_sample_camel_case():
    sample = parse_sample(RAW)
    assert sample.device_id == "device-core-01"
    assert sample.provider_id == "provider-1"
    assert sample.pop_id == "pop-central"
    assert sample.customer_id is None
    assert sample.timestamp == BASE_TIME
    assert sample.metrics["ifOperStatus"] == {"1": "up", "2": "down"}
    assert sample.events == {"polling_failed": False}


def test_parse_sample_snake_case():
    sample = parse_sample({"device_id": "d", "provider_id": "p", "customer_id": "c",
                           "timestamp": "2024-05-01T12:00:00+00:00"})
    assert (sample.device_id, sample.provider_id, sample.customer_id) == ("d", "p", "c")
    assert sample.metrics == {}


@pytest.mark.parametrize("raw", [
    "not a mapping",
    {"providerId": "p", "timestamp": "2024-05-01T12:00:00Z"},
    {"deviceId": "d", "timestamp": "2024-05-01T12:00:00Z"},
    {"deviceId": "d", "providerId": "p", "timestamp": "soon"},
    {"deviceId": "d", "providerId": "p"},
    {"deviceId": "d", "providerId": "p", "timestamp": "2024-05-01T12:00:00Z", "metrics": [1]},
])
def test_parse_sample_rejects(raw):
    with pytest.raises(ValidationError):
        parse_sample(raw)


def test_parse_samples_skips_bad_records():
    samples = parse_samples([RAW, {"deviceId": "x"}, RAW])
    assert len(samples) == 2


def test_static_source_returns_copy():
    source = StaticTelemetrySource([parse_sample(RAW)])
    batch = source.pull_metric_samples()
    batch.clear()
    assert len(source.pull_metric_samples()) == 1


# ── File source ─────────────────────────────────────────

def test_file_source_yaml(tmp_path):
    path = tmp_path / "batch.yaml"
    path.write_text(yaml.safe_dump({"samples": [RAW]}))
    [sample] = FileTelemetrySource(path).pull_metric_samples()
    assert sample.device_id == "device-core-01"


def test_file_source_json(tmp_path):
    path = tmp_path / "batch.json"
    raw = dict(RAW, metrics={"cpuUsage": 92})
    path.write_text(json.dumps([raw]))
    assert len(FileTelemetrySource(path).pull_metric_samples()) == 1


def test_file_source_missing_file(tmp_path):
    with pytest.raises(TelemetryError):
        FileTelemetrySource(tmp_path / "gone.yaml").pull_metric_samples()


def test_file_source_bad_yaml(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("samples: [unclosed")
    with pytest.raises(TelemetryError):
        FileTelemetrySource(path).pull_metric_samples()


# ── HTTP source ─────────────────────────────────────────

def test_http_source_parses_payload():
    client = MagicMock()
    client.get.return_value = {"samples": [RAW]}
    source = HTTPTelemetrySource("http://collector", client=client)
    assert len(source.pull_metric_samples()) == 1
    client.get.assert_called_once_with("/samples")


def test_http_source_accepts_bare_list():
    client = MagicMock()
    client.get.return_value = [RAW, RAW]
    assert len(HTTPTelemetrySource("http://collector", client=client).pull_metric_samples()) == 2


def test_http_source_api_error_becomes_telemetry_error():
    client = MagicMock()
    client.get.side_effect = APIError("HTTP 503", status_code=503)
    with pytest.raises(TelemetryError):
        HTTPTelemetrySource("http://collector", client=client).pull_metric_samples()


def test_http_source_unexpected_payload():
    client = MagicMock()
    client.get.return_value = {"samples": "nope"}
    with pytest.raises(TelemetryError):
        HTTPTelemetrySource("http://collector", client=client).pull_metric_samples()


def test_build_source():
    assert isinstance(build_source({"telemetry": {"source": "file", "path": "x.yaml"}}),
                      FileTelemetrySource)
    src = build_source({"telemetry": {"source": "http", "url": "http://collector:9000",
                                      "endpoint": "/v1/samples"}})
    assert isinstance(src, HTTPTelemetrySource)
    assert src.endpoint == "/v1/samples"
    with pytest.raises(ValueError):
        build_source({"telemetry": {"source": "kafka"}})
