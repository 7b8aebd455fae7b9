"""WSGI entry point for the FarmRod advisor.

Used both in development (``python farm_advisor_app.py``) and through the
``farmrod-advisor`` console script. Host and port come from the environment.
"""
from __future__ import annotations

import logging
import os

from app import create_app


def _env_flag_true(name: str) -> bool:
    v = os.getenv(name)
    return bool(v and v.lower() in ("1", "true", "yes", "on"))


def main() -> int:
    app = create_app()

    host = os.getenv("FARMROD_HOST", "0.0.0.0")
    port = int(os.getenv("FARMROD_PORT", "8000"))
    debug = _env_flag_true("FARMROD_DEBUG")

    logging.info("Starting server on %s:%s", host, port)

    try:
        app.run(host=host, port=port, debug=debug, use_reloader=False, threaded=True)
        logging.info("Server stopped.")
        return 0
    except KeyboardInterrupt:
        logging.info("Server stopped by user.")
        return 0
    except Exception as exc:  # pragma: no cover - top-level runtime errors
        logging.exception("ERROR: Failed to start server: %s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
