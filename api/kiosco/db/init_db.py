"""Create the database schema, optionally loading the demo catalog.

    python -m kiosco.db.init_db [--seed]
"""

import argparse
import logging

from kiosco.core.config import settings
from kiosco.core.logging_config import configure_logging
from kiosco.db.schema import init_schema
from kiosco.db.session import get_engine, get_session_factory
from kiosco.services.seed import seed_demo_products

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Initialize the kiosco database")
    parser.add_argument("--seed", action="store_true", help="insert demo products into an empty catalog")
    args = parser.parse_args(argv)

    configure_logging(settings.log_level)
    init_schema(get_engine())
    logger.info("schema ready", extra={"tables": ["profiles", "products", "sales", "sale_items"]})

    if args.seed:
        with get_session_factory()() as db:
            created = seed_demo_products(db)
        logger.info("seed finished", extra={"products_created": created})


if __name__ == "__main__":
    main()
