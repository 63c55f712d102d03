"""Crisis Engine HTTP handler - alert lifecycle endpoints.

Exposes the CrisisEngine to clients that cannot embed it directly.
Revisions posted here are assessed synchronously; the debounce gate is
for in-process callers that stream keystrokes.

All alert transitions are written to the hash-chained audit log and,
when AUDIT_PUBLISHING_ENABLED is set, to Kinesis.
"""
import logging
import os

from flask import Flask, request, jsonify

from solace.shared.models import TriggerSource, UserIntent
from solace.shared.utils import hash_text_for_audit
from solace.services.audit_service import AuditLogger, FanoutAuditSink, KinesisAuditSink
from solace.services.safety_service import EngineConfig
from .engine import CrisisEngine

logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)

# Initialize engine
config = EngineConfig.from_env()
audit_logger = AuditLogger()
if os.getenv("AUDIT_PUBLISHING_ENABLED", "false").lower() == "true":
    audit_sink = FanoutAuditSink(
        audit_logger,
        KinesisAuditSink(
            stream_name=os.getenv("KINESIS_STREAM_NAME", "solace-alert-audit"),
        ),
    )
else:
    audit_sink = audit_logger
engine = CrisisEngine(config=config, audit_sink=audit_sink)


@app.route("/health", methods=["GET"])
def health():
    """Health check endpoint."""
    return jsonify({
        "status": "healthy",
        "service": "crisis-engine",
    }), 200


@app.route("/ready", methods=["GET"])
def ready():
    """Readiness check; not ready while the lexicon is unavailable."""
    if not engine.scanner.available:
        return jsonify({
            "status": "not_ready",
            "reason": "lexicon_unavailable",
            "lexicon_version": engine.scanner.lexicon_version,
        }), 503
    return jsonify({
        "status": "ready",
        "lexicon_version": engine.scanner.lexicon_version,
    }), 200


@app.route("/scan", methods=["POST"])
def scan_text():
    """Stateless scan of a piece of text.

    Request Body:
        {"text": "..."}

    Response:
        {
            "severity": 3,
            "available": true,
            "signals": [...],
            "lexicon_version": "2026.10.01"
        }
    """
    try:
        data = request.get_json(silent=True)
        if not data:
            return jsonify({"error": "Request body required"}), 400

        text = data.get("text")
        if not isinstance(text, str):
            return jsonify({"error": "Missing text"}), 400

        result = engine.scanner.scan(text)
        return jsonify(result.to_dict()), 200

    except Exception as e:
        logger.error("SCAN_ERROR", extra={"error": str(e)})
        return jsonify({"error": "Failed to scan text"}), 500


@app.route("/entries/<entry_id>/start", methods=["POST"])
def start_entry(entry_id: str):
    """Register an entry with its presentation context.

    Request Body (optional):
        {
            "trigger_source": "journal",
            "require_acknowledge": true
        }
    """
    try:
        data = request.get_json(silent=True) or {}

        trigger_source = None
        if data.get("trigger_source") is not None:
            try:
                trigger_source = TriggerSource(data["trigger_source"])
            except ValueError:
                return jsonify({"error": f"Invalid trigger_source: {data['trigger_source']}"}), 400

        require_acknowledge = data.get("require_acknowledge")
        if require_acknowledge is not None and not isinstance(require_acknowledge, bool):
            return jsonify({"error": "require_acknowledge must be a boolean"}), 400

        state = engine.start_entry(
            entry_id,
            trigger_source=trigger_source,
            require_acknowledge=require_acknowledge,
        )
        return jsonify(state.to_dict()), 201

    except Exception as e:
        logger.error("ENTRY_START_ERROR", extra={"entry_id": entry_id, "error": str(e)})
        return jsonify({"error": "Failed to start entry"}), 500


@app.route("/entries/<entry_id>/revisions", methods=["POST"])
def submit_revision(entry_id: str):
    """Assess a revision and apply it to the entry's alert.

    Request Body:
        {
            "text": "...",
            "revision_seq": 4
        }

    Response:
        AlertState as JSON
    """
    try:
        data = request.get_json(silent=True)
        if not data:
            return jsonify({"error": "Request body required"}), 400

        text = data.get("text")
        revision_seq = data.get("revision_seq")
        if not isinstance(text, str):
            return jsonify({"error": "Missing text"}), 400
        if (
            not isinstance(revision_seq, int)
            or isinstance(revision_seq, bool)
            or revision_seq < 0
        ):
            return jsonify({"error": "revision_seq must be a non-negative integer"}), 400

        logger.info(
            "REVISION_RECEIVED",
            extra={
                "entry_id": entry_id,
                "revision_seq": revision_seq,
                "text_hash": hash_text_for_audit(text),
                "text_length": len(text),
            }
        )

        state = engine.assess_now(entry_id, text, revision_seq)
        return jsonify(state.to_dict()), 200

    except Exception as e:
        logger.error("REVISION_ERROR", extra={"entry_id": entry_id, "error": str(e)})
        return jsonify({"error": "Failed to assess revision"}), 500


@app.route("/entries/<entry_id>/present", methods=["POST"])
def present(entry_id: str):
    """Presenter reports the banner is visible."""
    try:
        state = engine.present(entry_id)
        if state is None:
            return jsonify({"error": "Entry not found"}), 404
        return jsonify(state.to_dict()), 200

    except Exception as e:
        logger.error("PRESENT_ERROR", extra={"entry_id": entry_id, "error": str(e)})
        return jsonify({"error": "Failed to present alert"}), 500


@app.route("/entries/<entry_id>/intents", methods=["POST"])
def handle_intent(entry_id: str):
    """Forward a user intent from the alert UI.

    Request Body:
        {"intent": "call_for_help"}
    """
    try:
        data = request.get_json(silent=True)
        if not data:
            return jsonify({"error": "Request body required"}), 400

        intent_name = data.get("intent")
        if not intent_name:
            return jsonify({"error": "Missing intent"}), 400
        try:
            intent = UserIntent(intent_name)
        except ValueError:
            return jsonify({"error": f"Unknown intent: {intent_name}"}), 400

        state = engine.handle_intent(entry_id, intent)
        if state is None:
            return jsonify({"error": "Entry not found"}), 404
        return jsonify(state.to_dict()), 200

    except Exception as e:
        logger.error("INTENT_ERROR", extra={"entry_id": entry_id, "error": str(e)})
        return jsonify({"error": "Failed to handle intent"}), 500


@app.route("/entries/<entry_id>/alert", methods=["GET"])
def get_alert(entry_id: str):
    """Current alert state for an entry."""
    try:
        state = engine.alert_state(entry_id)
        if state is None:
            return jsonify({"error": "Entry not found"}), 404
        return jsonify(state.to_dict()), 200

    except Exception as e:
        logger.error("ALERT_LOOKUP_ERROR", extra={"entry_id": entry_id, "error": str(e)})
        return jsonify({"error": "Failed to get alert"}), 500


@app.route("/entries/<entry_id>", methods=["DELETE"])
def end_entry(entry_id: str):
    """Entry deleted: archive its final alert state."""
    try:
        state = engine.end_entry(entry_id)
        if state is None:
            return jsonify({"error": "Entry not found"}), 404
        return jsonify({
            "archived": True,
            "final_state": state.to_dict(),
        }), 200

    except Exception as e:
        logger.error("ENTRY_END_ERROR", extra={"entry_id": entry_id, "error": str(e)})
        return jsonify({"error": "Failed to end entry"}), 500


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    port = int(os.getenv("PORT", "8003"))
    app.run(host="0.0.0.0", port=port, debug=False)
