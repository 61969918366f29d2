"""Telemetry sources and cycle scheduling."""
from telemetry.sources import StaticTelemetrySource, FileTelemetrySource, HTTPTelemetrySource, build_source
from telemetry.scheduler import CycleScheduler
