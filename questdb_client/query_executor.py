import asyncio
import json
import sys
import logging
from pathlib import Path

from questdb_client.client import ExecuteOptions, QuestDBClient
from questdb_client.config.config_manager import ConfigurationManager
from questdb_client.errors import QuestDBError

logger = logging.getLogger(__name__)


async def run_query(config_file: str, sql: str, limit: str = None) -> int:
    config_path = Path(config_file)
    manager = ConfigurationManager(config_dir=str(config_path.parent))
    config = manager.load_client_config(config_path.name)

    async with QuestDBClient(config=config) as client:
        response = await client.execute(ExecuteOptions(query=sql, limit=limit, count=True))
        for row in response.rows:
            print(json.dumps(row, default=str))

    logger.info(f"Query returned {response.last_report.kept} rows "
                f"(count={response.count}, dropped={response.last_report.dropped})")
    return 0


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if len(argv) < 2:
        print("Usage:")
        print("  python -m questdb_client.query_executor <config.yaml> <sql>")
        print("  python -m questdb_client.query_executor <config.yaml> <sql> <limit>")
        return 1

    config_file, sql = argv[0], argv[1]
    limit = argv[2] if len(argv) > 2 else None

    try:
        return asyncio.run(run_query(config_file, sql, limit))
    except (QuestDBError, FileNotFoundError) as e:
        logger.error(f"Query failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
