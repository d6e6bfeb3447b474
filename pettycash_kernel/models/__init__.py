"""ORM models for the petty cash kernel."""

from pettycash_kernel.models.activity_log import ActivityLog
from pettycash_kernel.models.batch import Batch
from pettycash_kernel.models.department import Department, Staff
from pettycash_kernel.models.receipt import Receipt
from pettycash_kernel.models.sequence import SequenceCounter

__all__ = [
    "ActivityLog",
    "Batch",
    "Department",
    "Receipt",
    "SequenceCounter",
    "Staff",
]
