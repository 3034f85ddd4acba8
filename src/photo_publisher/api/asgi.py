"""ASGI entrypoint for the photo publisher API."""

from photo_publisher.api.app import create_app
from photo_publisher.containers import build_container

app = create_app(build_container())
