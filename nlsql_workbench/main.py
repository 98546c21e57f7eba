"""Main entry point for the NL-to-SQL workbench"""
import logging
from nlsql_workbench.config import settings

# Configure root logger from LOG_LEVEL env var before any other imports
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

from nlsql_workbench.app import main

if __name__ == "__main__":
    main()
