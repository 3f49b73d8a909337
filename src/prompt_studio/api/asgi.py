"""ASGI entrypoint for the prompt studio API."""

from prompt_studio.api.app import create_app
from prompt_studio.containers import build_container

app = create_app(build_container())
