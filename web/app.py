"""
Flask HTTP API for the alert engine.

Endpoints (consumed by the NOC dashboard):
  GET  /health                           liveness + last cycle stats
  GET  /api/alerts                       list alerts (status, severity, device, provider, rule filters)
  GET  /api/alerts/<id>                  one alert
  POST /api/alerts/<id>/acknowledge      body: {"actor": "..."}
  POST /api/alerts/<id>/resolve          body: {"actor": "..."}
  POST /api/trigger                      run an evaluation cycle now
  GET  /api/rules                        current rule catalog
  POST /api/rules/reload                 reload the catalog from disk

Started via: python main.py web [--port 8080] [--host 127.0.0.1]
"""
import logging
from datetime import datetime, timezone

from flask import Flask, jsonify, request

from alerts.errors import NotFoundError, InvalidTransitionError, StorageError, TelemetryError
from models.alerts import AlertFilter

logger = logging.getLogger("netalert.web.app")


def _rule_to_dict(rule):
    return {
        "id": rule.id,
        "name": rule.name,
        "description": rule.description,
        "condition": rule.condition_text(),
        "severity": rule.severity.value,
        "deduplication_window_seconds": rule.deduplication_window_seconds,
        "aggregation": rule.aggregation.value,
        "targets": list(rule.targets),
        "enabled": rule.enabled,
    }


def create_app(config: dict, engine) -> Flask:
    """
    Factory function. Receives an initialized AlertEngine from main.py / wsgi.py.
    """
    app = Flask(__name__)

    @app.errorhandler(NotFoundError)
    def handle_not_found(e):
        return jsonify({"error": str(e)}), 404

    @app.errorhandler(InvalidTransitionError)
    def handle_transition(e):
        return jsonify({"error": str(e), "status": e.current}), 409

    @app.errorhandler(StorageError)
    def handle_storage(e):
        return jsonify({"error": str(e)}), 503

    def _actor():
        body = request.get_json(silent=True) or {}
        actor = body.get("actor") or request.args.get("actor")
        if not actor:
            return None
        return str(actor)

    @app.route("/health")
    def health():
        return jsonify({
            "status": "OK",
            "service": "netalert",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "last_cycle": engine.last_cycle,
        })

    @app.route("/api/alerts")
    def api_alerts():
        alert_filter = AlertFilter(
            status=request.args.get("status"),
            severity=request.args.get("severity"),
            device_id=request.args.get("deviceId") or request.args.get("device"),
            provider_id=request.args.get("providerId") or request.args.get("provider"),
            rule_id=request.args.get("ruleId") or request.args.get("rule"),
        )
        alerts = engine.list_alerts(alert_filter)
        # newest first
        alerts.sort(key=lambda a: a.created_at, reverse=True)
        counters = engine.alert_counters(alert_filter)
        return jsonify({"alerts": [a.to_dict() for a in alerts], **counters})

    @app.route("/api/alerts/<alert_id>")
    def api_alert(alert_id):
        return jsonify(engine.get_alert(alert_id).to_dict())

    @app.route("/api/alerts/<alert_id>/acknowledge", methods=["POST"])
    def api_acknowledge(alert_id):
        actor = _actor()
        if actor is None:
            return jsonify({"error": "actor is required"}), 400
        return jsonify(engine.acknowledge(alert_id, actor).to_dict())

    @app.route("/api/alerts/<alert_id>/resolve", methods=["POST"])
    def api_resolve(alert_id):
        actor = _actor()
        if actor is None:
            return jsonify({"error": "actor is required"}), 400
        return jsonify(engine.resolve(alert_id, actor).to_dict())

    @app.route("/api/trigger", methods=["POST"])
    def api_trigger():
        try:
            alerts = engine.run_cycle()
        except TelemetryError as e:
            logger.error(f"Triggered cycle failed: {e}")
            return jsonify({"success": False, "error": str(e)}), 502
        return jsonify({
            "success": True,
            "alertsGenerated": len(alerts),
            "alerts": [a.to_dict() for a in alerts],
        })

    @app.route("/api/rules")
    def api_rules():
        rules = engine.rules_source.get_current_rules()
        return jsonify({"rules": [_rule_to_dict(r) for r in rules], "count": len(rules)})

    @app.route("/api/rules/reload", methods=["POST"])
    def api_rules_reload():
        rules = engine.reload_rules()
        return jsonify({"count": len(rules), "errors": list(engine.rules_source.errors)})

    return app
