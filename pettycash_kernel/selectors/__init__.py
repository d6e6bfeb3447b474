"""Read-only query selectors."""

from pettycash_kernel.selectors.activity_selector import ActivitySelector
from pettycash_kernel.selectors.analytics_selector import AnalyticsSelector
from pettycash_kernel.selectors.base import BaseSelector
from pettycash_kernel.selectors.batch_selector import BatchSelector
from pettycash_kernel.selectors.department_selector import DepartmentSelector
from pettycash_kernel.selectors.float_selector import FloatSelector
from pettycash_kernel.selectors.receipt_selector import ReceiptSelector

__all__ = [
    "ActivitySelector",
    "AnalyticsSelector",
    "BaseSelector",
    "BatchSelector",
    "DepartmentSelector",
    "FloatSelector",
    "ReceiptSelector",
]
