"""Web application package for glossa."""

from typing import Any, Dict, Optional

from flask import Flask

from glossa.config import load_config


def create_app(config: Optional[Dict[str, Any]] = None, manager=None, config_path=None) -> Flask:
    """Application factory for the web API."""
    if config is None:
        config = load_config(config_path)

    from .app import build_app  # Import here to avoid circular imports

    return build_app(config, manager=manager, config_path=config_path)


__all__ = ["create_app"]
