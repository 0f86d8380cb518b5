"""Client for the remote backup/hosting API."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .errors import BackupDeleteFailed

logger = logging.getLogger(__name__)


class BackupClient:
    """Remove remote copies of workflows the user hosted or backed up."""

    def __init__(
        self,
        api_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.token = token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    async def delete_backup(self, workflow_id: str) -> None:
        """Delete the remote copy of ``workflow_id``.

        Raises:
            BackupDeleteFailed: The request failed or the API rejected it. The
                API's ``message`` is used when the response carries one.
        """
        try:
            response = await self._client.delete(
                f"{self.api_url}/me/workflows",
                params={"id": workflow_id},
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            raise BackupDeleteFailed(workflow_id, str(exc)) from exc

        if response.is_success:
            logger.info(f"Deleted remote backup of workflow {workflow_id}")
            return

        try:
            message = response.json().get("message")
        except ValueError:
            message = None
        raise BackupDeleteFailed(
            workflow_id, message or f"HTTP {response.status_code}"
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
