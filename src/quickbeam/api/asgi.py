"""ASGI entrypoint for the QuickBeam relay."""

from quickbeam.api.app import create_app
from quickbeam.containers import build_container

app = create_app(build_container())
