class WorkflowError(Exception):
    """Base class for errors raised by the grading workflows."""


class ValidationError(WorkflowError):
    """
    Raised before any network call when the request cannot be carried out:
    incomplete scores on submit, an empty rejection reason, a missing
    selection, or an attempt to edit an approved record.
    """


class RemoteOperationError(WorkflowError):
    """A Supabase table query or function call failed."""


class PartialBatchFailure(WorkflowError):
    """Some renders in a report batch failed. Carries the batch result."""

    def __init__(self, result):
        self.result = result
        failed = ", ".join(result.failed_ids)
        super().__init__(f"Report generation failed for {len(result.failed_ids)} student(s): {failed}")
