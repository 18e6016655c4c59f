#!/usr/bin/env python3
"""Script to sync an RPM repository into Pulp and search its latest version."""

import logging
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from rpm_content.application.content_query_service import ContentQueryService
from rpm_content.infrastructure.database import ContentDatabase
from rpm_content.infrastructure.pulp_client import PulpClient

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def create_repository_version(client: PulpClient, domain: str, name: str, url: str) -> str:
    """Create and sync a repository, returning its latest version href."""
    client.lookup_or_create_domain(domain)
    repo_href, remote_href = client.create_repository(domain, name, url)
    task_href = client.sync_repository(repo_href, remote_href)
    client.poll_task(task_href)

    version_href = client.get_latest_version_href(domain, name)
    if version_href is None:
        raise RuntimeError(f"repository {name} has no latest version")
    return version_href


def main():
    """Sync a repository and print packages, groups and environments matching a search."""
    service = None
    try:
        domain = os.getenv("PULP_DOMAIN", "example-domain")
        repo_name = os.getenv("REPOSITORY_NAME", "zoo")
        repo_url = os.getenv(
            "REPOSITORY_URL", "https://content-services.github.io/fixtures/yum/comps-modules/v1/"
        )
        search = sys.argv[1] if len(sys.argv) > 1 else ""
        limit = int(os.getenv("SEARCH_LIMIT", "100"))

        client = PulpClient()
        version_href = create_repository_version(client, domain, repo_name, repo_url)
        logger.info(f"Searching repository version {version_href}")

        service = ContentQueryService(ContentDatabase())

        print("\nPackages\n==================")
        for package in service.package_search([version_href], search, limit):
            print(f"Name: {package.name}\nSummary: {package.summary}")

        print("\nPackage Groups\n==================")
        for group in service.package_group_search([version_href], search, limit):
            print(f"Name: {group.name}\nID: {group.id}\nPackages: {', '.join(group.packages)}")

        print("\nEnvironments\n==================")
        for environment in service.environment_search([version_href], search, limit):
            print(f"Name: {environment.name}\nID: {environment.id}")

        return 0

    except Exception as e:
        logger.error(f"Search failed: {e}", exc_info=True)
        return 1
    finally:
        if service:
            service.close()


if __name__ == "__main__":
    sys.exit(main())
