"""
CorretorCRM Configuration
Loads settings from environment variables with sensible defaults.
"""

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

_logger = logging.getLogger(__name__)

# Load .env file
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)


class Config:
    """Application configuration."""

    # Database: required, read from .env
    DATABASE_URL = os.getenv('DATABASE_URL')
    if not DATABASE_URL:
        _logger.critical("DATABASE_URL is not set, cannot start. Copy .env.example to .env and configure it.")
        raise ValueError("DATABASE_URL environment variable is not set. Copy .env.example to .env and configure it.")

    # Timezone used when rendering dates for the agent
    TIMEZONE = os.getenv('TIMEZONE', 'America/Sao_Paulo')

    # Default number of leads/visits returned by list queries
    DEFAULT_PAGE_SIZE = int(os.getenv('DEFAULT_PAGE_SIZE', '50'))

    # Max leads inspected per automatic follow-up run
    FOLLOW_UP_BATCH_SIZE = int(os.getenv('FOLLOW_UP_BATCH_SIZE', '200'))

    # Interactions shown on a lead detail page
    INTERACTION_HISTORY_LIMIT = int(os.getenv('INTERACTION_HISTORY_LIMIT', '20'))


# Singleton instance
config = Config()
