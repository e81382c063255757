"""ASGI entrypoint for the try-on web app."""

from jewelry_tryon.api.app import create_app
from jewelry_tryon.containers import build_container

app = create_app(build_container())
