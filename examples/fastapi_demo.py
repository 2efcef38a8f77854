"""
FastAPI demo receiving signed webhooks.

Usage:
    # Install dependencies
    pip install -e ".[fastapi]"

    # Run the server
    uvicorn examples.fastapi_demo:app --port 8009 --reload

    # Or directly
    python examples/fastapi_demo.py

Test with curl:
    BODY='{"data":{"post":{"id":"p1"},"eventType":"post_created"},"metadata":{"uuid":"u1"}}'
    SIG=$(python -c "import sys,time; from webhook_edge_auth import *; t=int(time.time()*1000); \
        print(format_signature_header(t, create_signature(t, sys.argv[1], 'whsec_demo')))" "$BODY")
    curl -X POST http://localhost:8009/webhook -H "x-hashnode-signature: $SIG" -d "$BODY"

Environment variables:
    WEBHOOK_SECRET - Shared webhook secret (default: whsec_demo)
    WEBHOOK_REQUIRE_VERIFIED - Set to "false" for observe mode (default: true)
"""

import os

from fastapi import FastAPI, Request

from webhook_edge_auth import StaticSecretProvider, WebhookSignatureASGIMiddleware
from webhook_edge_auth.events import parse_webhook_event

# Configuration from environment
WEBHOOK_SECRET = os.getenv("WEBHOOK_SECRET", "whsec_demo")
REQUIRE_VERIFIED = os.getenv("WEBHOOK_REQUIRE_VERIFIED", "true").lower() == "true"

app = FastAPI(
    title="Webhook Demo API",
    description="Demo API with webhook signature verification",
    version="0.1.0",
)

app.add_middleware(
    WebhookSignatureASGIMiddleware,
    secret_provider=StaticSecretProvider(WEBHOOK_SECRET),
    require_verified=REQUIRE_VERIFIED,
)


@app.post("/webhook")
async def webhook(request: Request):
    """Accepts a delivery once the middleware has verified it."""
    state = request.state.webhook
    if not (state.result and state.result.verified):
        return {"accepted": False, "error": state.result.error if state.result else None}

    try:
        event = parse_webhook_event(await request.body())
    except ValueError as e:
        return {"accepted": False, "error": str(e)}

    return {"accepted": True, "event_type": event.event_type, "uuid": event.uuid}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8009)
