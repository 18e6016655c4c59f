"""Pulp REST API client for creating and syncing RPM repositories."""

import logging
import time
from typing import Any, Dict, Optional, Tuple

import requests

from rpm_content.infrastructure.config import PulpServerConfig

logger = logging.getLogger(__name__)


DEFAULT_DOMAIN = "default"

COMPLETED = "completed"
WAITING = "waiting"
RUNNING = "running"
SKIPPED = "skipped"
CANCELED = "canceled"
CANCELING = "canceling"
FAILED = "failed"

IN_PROGRESS_STATES = (WAITING, RUNNING, CANCELING)


class PulpClientError(Exception):
    """Raised when a Pulp API request fails."""
    pass


class PulpTaskFailed(PulpClientError):
    """Raised when a Pulp task ends in the failed state."""

    def __init__(self, task: Dict[str, Any]):
        super().__init__(task_error_string(task))
        self.task = task


def task_error_string(task: Dict[str, Any]) -> str:
    """Flatten a task's error map into one message."""
    error = task.get("error") or {}
    return "".join(f"{key}: {value}.  " for key, value in error.items())


def poll_delay(iteration: int) -> int:
    """Seconds to wait before the next poll of a running task."""
    if iteration <= 5:
        return 1
    if iteration <= 10:
        return 5
    if iteration <= 20:
        return 10
    return 30


class PulpClient:
    """Client for the Pulp REST API with retry on transport errors."""

    MAX_RETRIES = 5
    RETRY_DELAY_SECONDS = 1

    def __init__(self, config: Optional[PulpServerConfig] = None):
        """
        Initialize Pulp client.

        Args:
            config: Server settings. If None, uses PULP_* env vars.
        """
        if config is None:
            config = PulpServerConfig.from_env()

        self.config = config
        self.base_url = config.url.rstrip("/")
        self.session = requests.Session()
        self.session.auth = (config.username, config.password)
        self.session.headers.update({"Content-Type": "application/json"})

    def _request(
        self,
        method: str,
        href: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Send a request with retry logic.

        Args:
            method: HTTP method
            href: Pulp href, relative to the server url
            json: Request body
            params: Query string parameters

        Returns:
            Decoded JSON response body

        Raises:
            PulpClientError: If the request is rejected or fails after retries
        """
        url = f"{self.base_url}{href}"
        for attempt in range(self.MAX_RETRIES):
            try:
                response = self.session.request(
                    method,
                    url,
                    json=json,
                    params=params,
                    timeout=self.config.request_timeout,
                )
                if response.status_code >= 500:
                    response.raise_for_status()
                if response.status_code >= 400:
                    raise PulpClientError(
                        f"{method} {href} failed with {response.status_code}: {response.text}"
                    )
                if not response.content:
                    return {}
                return response.json()

            except requests.exceptions.RequestException as e:
                if attempt < self.MAX_RETRIES - 1:
                    delay = self.RETRY_DELAY_SECONDS * (2 ** attempt)  # Exponential backoff
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.MAX_RETRIES}): {e}. Retrying in {delay}s..."
                    )
                    time.sleep(delay)
                else:
                    raise PulpClientError(f"{method} {href} failed: {e}") from e

        raise PulpClientError("Max retries exceeded")

    def lookup_domain(self, name: str) -> Optional[str]:
        """Return the href of the named domain, or None if it does not exist."""
        data = self._request("GET", f"/pulp/{DEFAULT_DOMAIN}/api/v3/domains/", params={"name": name})
        results = data.get("results", [])
        if not results:
            return None
        href = results[0].get("pulp_href")
        if href is None:
            raise PulpClientError(f"unexpectedly got a nil href for domain {name}")
        return href

    def lookup_or_create_domain(self, name: str) -> str:
        """Return the href of the named domain, creating it with local storage if needed."""
        href = self.lookup_domain(name)
        if href:
            return href

        data = self._request(
            "POST",
            f"/pulp/{DEFAULT_DOMAIN}/api/v3/domains/",
            json={
                "name": name,
                "storage_class": "pulpcore.app.models.storage.FileSystem",
                "storage_settings": {"location": f"/var/lib/pulp/{name}/"},
            },
        )
        logger.info(f"Created domain {name}")
        return data["pulp_href"]

    def create_repository(self, domain: str, name: str, url: str) -> Tuple[str, str]:
        """
        Create an RPM remote and a repository using it.

        Returns:
            Tuple of (repository href, remote href)
        """
        remote = self._request(
            "POST",
            f"/pulp/{domain}/api/v3/remotes/rpm/rpm/",
            json={"name": name, "url": url, "policy": self.config.download_policy},
        )
        repository = self._request(
            "POST",
            f"/pulp/{domain}/api/v3/repositories/rpm/rpm/",
            json={"name": name, "remote": remote["pulp_href"]},
        )
        logger.info(f"Created repository {name} in domain {domain}")
        return repository["pulp_href"], remote["pulp_href"]

    def update_remote(self, remote_href: str, url: str):
        """Point a remote at a new upstream url."""
        self._request("PATCH", remote_href, json={"url": url})

    def sync_repository(self, repository_href: str, remote_href: str) -> str:
        """Start a mirror sync and return the task href."""
        data = self._request(
            "POST",
            f"{repository_href}sync/",
            json={"remote": remote_href, "sync_policy": "mirror_content_only"},
        )
        return data["task"]

    def get_task(self, task_href: str) -> Dict[str, Any]:
        """Fetch a Pulp task."""
        return self._request("GET", task_href)

    def poll_task(self, task_href: str) -> Dict[str, Any]:
        """
        Poll a task until it reaches a terminal state.

        Returns:
            The final task

        Raises:
            PulpTaskFailed: If the task failed
        """
        poll_count = 1
        while True:
            task = self.get_task(task_href)
            state = task.get("state")
            if state == FAILED:
                raise PulpTaskFailed(task)
            if state not in IN_PROGRESS_STATES:
                # Finished, or a state this client does not know about.
                return task

            time.sleep(poll_delay(poll_count))
            poll_count += 1

    def get_repository_by_name(self, domain: str, name: str) -> Optional[Dict[str, Any]]:
        """Return the named RPM repository, or None if it does not exist."""
        data = self._request(
            "GET", f"/pulp/{domain}/api/v3/repositories/rpm/rpm/", params={"name": name}
        )
        results = data.get("results", [])
        return results[0] if results else None

    def get_latest_version_href(self, domain: str, name: str) -> Optional[str]:
        """Return the latest version href of the named RPM repository."""
        repository = self.get_repository_by_name(domain, name)
        if repository is None:
            return None
        return repository.get("latest_version_href")
