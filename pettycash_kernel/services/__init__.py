"""Services for the petty cash kernel (write side)."""

from pettycash_kernel.services.activity_log_service import ActivityLogService
from pettycash_kernel.services.batch_service import BatchService
from pettycash_kernel.services.department_service import DepartmentService
from pettycash_kernel.services.receipt_service import ReceiptService
from pettycash_kernel.services.sequence_service import SequenceService

__all__ = [
    "ActivityLogService",
    "BatchService",
    "DepartmentService",
    "ReceiptService",
    "SequenceService",
]
