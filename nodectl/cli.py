import logging
import sys

import typer

from nodectl.commands import config, node
from nodectl.config import DEFAULT_LOG_FILE
from nodectl.logging import setup_logging

app = typer.Typer(help="nodectl - prepare, attach and decommission nodes of a managed Kubernetes control plane")

# Global debug flag
debug_mode = False

# Add all command groups
app.add_typer(node.app, name="node")
app.add_typer(config.app, name="config")


# Global options callback
@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """nodectl - Node lifecycle CLI."""
    global debug_mode
    debug_mode = debug
    setup_logging(debug, DEFAULT_LOG_FILE)
    if debug:
        logging.getLogger("nodectl").debug("Debug mode enabled")


if __name__ == "__main__":
    try:
        app()
    except Exception as e:
        if debug_mode:
            import traceback
            logging.error(f"Unhandled exception: {e}\n{traceback.format_exc()}")
        else:
            logging.error(f"Error: {e}")
        sys.exit(1)
