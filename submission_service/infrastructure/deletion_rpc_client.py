# Client for the server-side `delete_user_submission` procedure
import logging
from typing import Optional, Dict, Any

import httpx

from submission_service.app.service.exceptions import DeletionProcedureError

logger = logging.getLogger(__name__)


class DeletionProcedureUnavailable(DeletionProcedureError):
    """The procedure endpoint does not exist on the server (HTTP 404)."""
    pass


class DeletionProcedureClient:
    def __init__(self, http_client: httpx.AsyncClient, url: str, token: Optional[str] = None):
        self.http_client = http_client
        self.url = url
        self.token = token

    async def delete_submission(self, submission_id: str) -> Optional[Dict[str, Any]]:
        """Runs the whole deletion cascade server-side. Returns the procedure's JSON answer, if any."""
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            response = await self.http_client.post(
                self.url,
                json={"submission_id_to_delete": submission_id},
                headers=headers,
            )
        except httpx.RequestError as e:
            logger.error(f"Request error calling deletion procedure: {e}", exc_info=True)
            raise DeletionProcedureError(submission_id, str(e)) from e

        if response.status_code == 404:
            logger.warning(f"Deletion procedure not available at {self.url}.")
            raise DeletionProcedureUnavailable(submission_id, "procedure not found", status_code=404)
        if response.is_error:
            logger.error(f"Deletion procedure failed for submission {submission_id}: {response.status_code} - {response.text}")
            raise DeletionProcedureError(submission_id, response.text or "no detail", status_code=response.status_code)

        logger.info(f"Submission {submission_id} deleted by server-side procedure.")
        if response.content:
            try:
                return response.json()
            except ValueError:
                return None
        return None
