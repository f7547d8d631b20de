"""Application entry point for the tokengate server."""

from tokengate.app import App
from tokengate.config import Config
from tokengate.logging import setup_logging
from tokengate.web.runner import run_server


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    app = App(config)
    run_server(app, config)


if __name__ == "__main__":
    main()
