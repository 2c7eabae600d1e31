"""
SimpleBot gateway launcher.

Reads PORT / HOST / CLIENT_ORIGIN (and .env) via the config loader, loads
the server rule table once, then serves the gateway with uvicorn.
"""

import argparse
import logging

import uvicorn

from simplebot.config import configure_locale, configure_logging, load_config
from simplebot.gateway import create_app
from simplebot.rules import load_rule_table
from simplebot.version import CURRENT_VERSION

logger = logging.getLogger("SIMPLEBOT.Server")


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="SimpleBot realtime gateway")
    parser.add_argument("--config", default="config.json", help="path to config.json")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    configure_logging(config)
    configure_locale()

    rules = load_rule_table(config.get("server.rules_path"))
    app = create_app(rules=rules, config=config)

    host = config.get("server.host")
    port = config.get("server.port")
    origins = "allow all" if config.allow_all_origins else config.get("server.origins")
    logger.info(f"SimpleBot gateway v{CURRENT_VERSION} on {host}:{port} (origins: {origins})")

    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
