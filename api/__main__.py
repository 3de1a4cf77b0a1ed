"""
Development runner: `python -m api`.
Production deployments serve `api:create_app()` through a WSGI server instead.
"""
import logging
import os

from . import create_app

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

# APP_ENV picks the config class (see get_config())
app = create_app()

if __name__ == "__main__":
    host = os.getenv("FLASK_RUN_HOST", "127.0.0.1")
    port = int(os.getenv("FLASK_RUN_PORT", "8000"))
    debug = os.getenv("FLASK_DEBUG", str(app.config.get("DEBUG", False))).lower() in ("1", "true", "yes")
    # the reloader would start a second sweeper thread in the parent process
    app.run(host=host, port=port, debug=debug, use_reloader=not app.config.get("START_SWEEPER"))
