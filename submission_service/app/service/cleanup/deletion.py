# Entry point for deleting a submission: server-side procedure when available, else client-side cleanup
import logging
from typing import Optional, Any

from pydantic import BaseModel

from submission_service.app.service.cleanup.protocol import CleanupReport, SubmissionCleanupProtocol
from submission_service.infrastructure.deletion_rpc_client import DeletionProcedureClient, DeletionProcedureUnavailable

logger = logging.getLogger(__name__)


class DeletionResult(BaseModel):
    submission_id: str
    method: str # "procedure" or "cleanup"
    report: Optional[CleanupReport] = None
    procedure_response: Optional[Any] = None


class SubmissionDeletionService:
    def __init__(self, protocol: SubmissionCleanupProtocol, rpc_client: Optional[DeletionProcedureClient] = None):
        self.protocol = protocol
        self.rpc_client = rpc_client

    async def delete(self, submission_id: str) -> DeletionResult:
        """
        Raises:
            DeletionProcedureError: the procedure exists but failed.
            CleanupFatalError: client-side cleanup could not delete the submission row.
        """
        if self.rpc_client is not None:
            try:
                response = await self.rpc_client.delete_submission(submission_id)
                return DeletionResult(submission_id=submission_id, method="procedure", procedure_response=response)
            except DeletionProcedureUnavailable:
                logger.warning(f"Deletion procedure unavailable; falling back to client-side cleanup for submission {submission_id}.")

        report = await self.protocol.run(submission_id)
        return DeletionResult(submission_id=submission_id, method="cleanup", report=report)
