import logging


def setup_logging(level: str = "INFO", debug: bool = False) -> None:
    """
    Clean production logging:
    - app logs: configured level (DEBUG when debug is on)
    - SQLAlchemy and driver logs: WARNING+ (no query/pool spam)
    """
    app_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=app_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    for name in (
        "sqlalchemy",
        "sqlalchemy.engine",
        "sqlalchemy.pool",
        "sqlalchemy.orm",
        "asyncpg",
        "aiosqlite",
    ):
        logging.getLogger(name).setLevel(logging.WARNING)
