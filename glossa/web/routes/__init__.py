"""Route blueprints for the web application."""

from .models import models_bp
from .settings import settings_bp
from .translation import translation_bp

__all__ = [
    "models_bp",
    "settings_bp",
    "translation_bp",
]
