"""
Database Setup Script for the Taskweave Recommender

Creates the ``bandit_models`` table used by the SQL model store and, when
the file backend is configured, the model directory.
"""

import logging
import sys
from pathlib import Path

from taskweave.config.settings import get_settings
from taskweave.services.repositories import SqlModelRepository

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_tables(database_url: str):
    """Create all necessary tables."""
    try:
        repository = SqlModelRepository.from_url(database_url)
        repository.create_table()
        logger.info("Table 'bandit_models' is ready")
    except Exception as e:
        logger.error(f"Error creating tables: {e}")
        raise


def main():
    """Main setup function."""
    print("Taskweave Recommender - Storage Setup")
    print("=" * 50)

    settings = get_settings()
    database_url = sys.argv[1] if len(sys.argv) > 1 else settings.database_url

    try:
        print("Creating tables...")
        create_tables(database_url)

        if settings.model_store_backend == "file":
            Path(settings.model_store_path).mkdir(parents=True, exist_ok=True)
            print(f"Model directory: {settings.model_store_path}")

        print("\nStorage setup completed successfully!")
        print(f"Database URL: {database_url}")

    except Exception as e:
        print(f"Storage setup failed: {e}")
        raise


if __name__ == "__main__":
    main()
