"""Project root entry point for launching the web API."""

from __future__ import annotations

import sys
from pathlib import Path


def _bootstrap_path() -> None:
    """Ensure the glossa package is importable when running from project root."""
    project_root = Path(__file__).resolve().parent
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))


def main():
    _bootstrap_path()
    from glossa.config import load_config
    from glossa.web import create_app

    config = load_config()
    web = config.get("web", {})
    app = create_app(config)
    app.run(host=web.get("host", "0.0.0.0"), port=int(web.get("port", 5500)),
            debug=config.get("log_mode") == "debug")


if __name__ == "__main__":
    main()
