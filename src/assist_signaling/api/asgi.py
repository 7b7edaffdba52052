"""ASGI entrypoint for the signaling service."""

from assist_signaling.api.app import create_app
from assist_signaling.containers import build_container

app = create_app(build_container())
