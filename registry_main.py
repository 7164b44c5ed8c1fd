import logging
import os

from dotenv import load_dotenv

from infrastructure.config import DatabaseSettings
from infrastructure.factory import RepositoryFactory


load_dotenv()

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

logger = logging.getLogger("registry_main")


def main() -> None:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = DatabaseSettings.from_env()
    factory = RepositoryFactory(settings)

    # The listeners own this map; it is seeded once here and then kept
    # current by heartbeats.
    servers = {}
    factory.servers().load_online_servers(servers)

    logger.info(
        "Registry ready: %d accounts, %d online servers (%s engine)",
        factory.accounts().count_users(),
        len(servers),
        settings.engine,
    )


if __name__ == "__main__":
    main()
