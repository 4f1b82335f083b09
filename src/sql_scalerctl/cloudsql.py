"""
Cloud SQL Admin API access for sql-scalerctl

Provides the two external dependencies of a scaling decision: querying the
status of a long-running resize operation, and starting a new resize by
changing the instance's machine tier.
"""

from abc import ABC, abstractmethod
from typing import Any

import google.auth
import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession

from .constants import CLOUDSQL_SCOPES, DEFAULT_CLOUDSQL_API_ROOT, DEFAULT_TIER_PREFIX
from .errors import OperationQueryError, ScalingExecutionError
from .log import get_logger
from .models import InstanceConfig, OperationStatus

logger = get_logger(__name__)


class OperationStatusProvider(ABC):
    @abstractmethod
    def query(self, project_id: str, operation_id: str) -> OperationStatus | None:
        """
        Get the status of a long-running operation

        Returns:
            The operation status, or None if the API returned nothing

        Raises:
            OperationQueryError: If the status could not be retrieved
        """


class ScaleExecutor(ABC):
    @abstractmethod
    def execute(self, config: InstanceConfig, suggested_size: int) -> str | None:
        """
        Start resizing the instance to ``suggested_size``

        Returns:
            The id of the started operation, if the API reported one

        Raises:
            ScalingExecutionError: If the resize could not be started
        """


class CloudSqlAdminClient(OperationStatusProvider, ScaleExecutor):
    """Cloud SQL Admin REST API client using application default credentials"""

    def __init__(
        self,
        api_root: str = DEFAULT_CLOUDSQL_API_ROOT,
        tier_prefix: str = DEFAULT_TIER_PREFIX,
        session: requests.Session | None = None,
    ):
        self.api_root = api_root.rstrip("/")
        self.tier_prefix = tier_prefix
        self._session = session

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            credentials, _ = google.auth.default(scopes=list(CLOUDSQL_SCOPES))
            self._session = AuthorizedSession(credentials)
        return self._session

    def _instance_url(self, project_id: str, instance_id: str) -> str:
        return f"{self.api_root}/projects/{project_id}/instances/{instance_id}"

    def query(self, project_id: str, operation_id: str) -> OperationStatus | None:
        url = f"{self.api_root}/projects/{project_id}/operations/{operation_id}"
        logger.trace("Querying operation", extra={"url": url})
        try:
            response = self.session.get(url)
            response.raise_for_status()
            if not response.content:
                return None
            body = response.json()
        except (requests.RequestException, GoogleAuthError, ValueError) as e:
            raise OperationQueryError(
                f"GetOperation({operation_id}) failed: {e}"
            ) from e

        if not body:
            return None
        if not isinstance(body, dict):
            raise OperationQueryError(
                f"GetOperation({operation_id}) returned malformed data"
            )
        return OperationStatus.from_api(body)

    def execute(self, config: InstanceConfig, suggested_size: int) -> str | None:
        logger.info(
            f"Scaling Cloud SQL instance to {suggested_size} {config.units}",
            extra={"suggested_size": suggested_size},
        )
        url = self._instance_url(config.project_id, config.instance_id)
        try:
            response = self.session.get(url)
            response.raise_for_status()
            instance: dict[str, Any] = response.json()

            instance.setdefault("settings", {})["tier"] = (
                f"{self.tier_prefix}{suggested_size}"
            )

            response = self.session.put(url, json=instance)
            response.raise_for_status()
            operation: dict[str, Any] = response.json() if response.content else {}
        except (requests.RequestException, GoogleAuthError, ValueError) as e:
            raise ScalingExecutionError(str(e)) from e

        operation_id = operation.get("name") or None
        logger.debug(
            "Cloud SQL started the scaling operation",
            extra={"operation_id": operation_id},
        )
        return operation_id
