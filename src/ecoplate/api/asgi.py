"""ASGI entrypoint for the EcoPlate API."""

from ecoplate.api.app import create_app
from ecoplate.containers import build_container

app = create_app(build_container())
