#!/usr/bin/env python3
"""Script to dump the packages and advisories of repository versions to CSV and JSON."""

import logging
import sys
import os
import csv
import json
from dataclasses import asdict
from datetime import datetime

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from rpm_content.application.content_query_service import ContentQueryService
from rpm_content.domain.content import PageOptions

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)

PAGE_SIZE = 500


def collect_pages(list_page) -> list:
    """Call a paginated list operation until every row has been read."""
    rows = []
    offset = 0
    while True:
        page, total = list_page(PageOptions(offset=offset, limit=PAGE_SIZE))
        rows.extend(page)
        offset += len(page)
        if not page or offset >= total:
            return rows


def dump_to_csv(rows: list, output_file: str):
    """Dump rows to CSV."""
    if not rows:
        logger.warning(f"No data to dump to {output_file}")
        return

    records = [asdict(row) for row in rows]
    with open(output_file, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, fieldnames=records[0].keys())
        writer.writeheader()
        writer.writerows(records)

    logger.info(f"Dumped {len(records)} rows to {output_file}")


def dump_to_json(rows: list, output_file: str):
    """Dump rows to JSON."""
    if not rows:
        logger.warning(f"No data to dump to {output_file}")
        return

    with open(output_file, 'w', encoding='utf-8') as f:
        json.dump([asdict(row) for row in rows], f, indent=2, ensure_ascii=False)

    logger.info(f"Dumped {len(rows)} rows to {output_file}")


def main():
    """Dump every package and advisory visible in the given version hrefs."""
    hrefs = sys.argv[1:]
    if not hrefs:
        logger.error("Usage: dump_repository_version.py VERSION_HREF [VERSION_HREF ...]")
        return 2

    service = ContentQueryService()
    try:
        output_dir = os.getenv("OUTPUT_DIR", "artifacts")
        os.makedirs(output_dir, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

        packages = collect_pages(lambda page: service.package_list(hrefs, page=page))
        errata = collect_pages(lambda page: service.errata_list(hrefs, page=page))

        for name, rows in (("packages", packages), ("errata", errata)):
            dump_to_csv(rows, os.path.join(output_dir, f"{name}_{timestamp}.csv"))
            dump_to_json(rows, os.path.join(output_dir, f"{name}_{timestamp}.json"))

        logger.info(f"Dump completed: {len(packages)} packages, {len(errata)} advisories")
        return 0
    except Exception as e:
        logger.error(f"Dump failed: {e}", exc_info=True)
        return 1
    finally:
        service.close()


if __name__ == "__main__":
    sys.exit(main())
