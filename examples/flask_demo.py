"""
Flask demo receiving signed webhooks.

Usage:
    # Install dependencies
    pip install -e ".[flask]"

    # Run the server
    flask --app examples.flask_demo run --port 8010

    # Or directly
    python examples/flask_demo.py

Environment variables:
    WEBHOOK_SECRET - Shared webhook secret (default: whsec_demo)
    WEBHOOK_REQUIRE_VERIFIED - Set to "false" for observe mode (default: true)
"""

import os

from flask import Flask, jsonify, request

from webhook_edge_auth import StaticSecretProvider
from webhook_edge_auth.events import parse_webhook_event
from webhook_edge_auth.middleware import WebhookSignatureWSGIMiddleware
from webhook_edge_auth.middleware.wsgi import ENVIRON_KEY

# Configuration from environment
WEBHOOK_SECRET = os.getenv("WEBHOOK_SECRET", "whsec_demo")
REQUIRE_VERIFIED = os.getenv("WEBHOOK_REQUIRE_VERIFIED", "true").lower() == "true"

app = Flask(__name__)

# Wrap with signature middleware
app.wsgi_app = WebhookSignatureWSGIMiddleware(
    app.wsgi_app,
    secret_provider=StaticSecretProvider(WEBHOOK_SECRET),
    require_verified=REQUIRE_VERIFIED,
)


@app.route("/webhook", methods=["POST"])
def webhook():
    """Accepts a delivery once the middleware has verified it."""
    state = request.environ.get(ENVIRON_KEY)
    if not (state and state.result and state.result.verified):
        return jsonify({"accepted": False}), 401

    try:
        event = parse_webhook_event(request.get_data())
    except ValueError as e:
        return jsonify({"accepted": False, "error": str(e)}), 400

    return jsonify({"accepted": True, "event_type": event.event_type, "uuid": event.uuid})


@app.route("/health")
def health():
    """Health check endpoint."""
    return jsonify({"status": "ok"})


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=8010, debug=True)
