"""stdio entry point: ``python -m vergeos_mcp``."""

import asyncio
import sys

from .config import load_config
from .exceptions import ConfigurationError
from .logging_config import get_logger, setup_logging
from .server import VergeMCPServer

logger = get_logger(__name__)


def main() -> int:
    try:
        config = load_config()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(
        log_level=config.server.log_level,
        json_format=config.server.log_json,
        log_file=config.server.log_file,
    )
    logger.info("Starting VergeOS MCP server on stdio")

    try:
        asyncio.run(VergeMCPServer(config).run_stdio())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
