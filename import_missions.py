"""Import missions and rockets from a CSV file without going through HTTP.

Defaults to ``IMPORT_DATA_DIR/IMPORT_CSV_FILENAME``; pass a path to override.
"""

import argparse
import asyncio
import logging
import sys

from spacemissions.config import settings
from spacemissions.db import AsyncSessionMaker, engine
from spacemissions.errors import SpaceMissionsError
from spacemissions.logging_config import setup_logging
from spacemissions.parsers import ParseError
from spacemissions.pipelines.ingest import import_csv

logger = logging.getLogger("import_missions")


async def run(csv_path) -> int:
    try:
        async with AsyncSessionMaker() as session:
            report = await import_csv(session, csv_path)
    except FileNotFoundError:
        logger.error(f"CSV file not found: {csv_path}")
        return 2
    except (ParseError, SpaceMissionsError) as e:
        logger.error(f"Import failed: {e}")
        return 1
    finally:
        await engine.dispose()

    print(
        f"Loaded {report.loaded}, skipped {report.skipped}, "
        f"rockets added {report.rockets_added}, missions added {report.missions_added}"
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("csv_path", nargs="?", default=str(settings.imports.csv_path))
    args = parser.parse_args(argv)
    setup_logging()
    return asyncio.run(run(args.csv_path))


if __name__ == "__main__":
    sys.exit(main())
