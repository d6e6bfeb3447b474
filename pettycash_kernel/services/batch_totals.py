"""
Batch total recomputation.

Shared by ReceiptService (a batched receipt is rejected) and BatchService
(create, HOD approval, disbursement).  Always a full re-sum over the batch's
current non-rejected members, never an incremental adjustment, so repeated
calls with no intervening change produce identical totals.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from pettycash_kernel.db.types import sum_money
from pettycash_kernel.domain.values import ReceiptStatus
from pettycash_kernel.logging_config import get_logger
from pettycash_kernel.models.batch import Batch
from pettycash_kernel.models.receipt import Receipt

logger = get_logger("services.batch_totals")


def recalculate_batch_totals(session: Session, batch: Batch) -> Batch:
    """Set ``batch.total_amount`` / ``total_gst`` from its members.  Does not commit."""
    rows = session.execute(
        select(Receipt.amount_total, Receipt.amount_gst).where(
            Receipt.batch_id == batch.id,
            Receipt.status != ReceiptStatus.REJECTED.value,
        )
    ).all()

    total_amount = sum_money(r.amount_total for r in rows)
    total_gst = sum_money(r.amount_gst for r in rows)

    if batch.total_amount != total_amount or batch.total_gst != total_gst:
        logger.info(
            "batch_totals_recalculated",
            extra={
                "batch_id": str(batch.id),
                "member_count": len(rows),
                "previous_total": str(batch.total_amount),
                "total_amount": str(total_amount),
                "total_gst": str(total_gst),
            },
        )
    batch.total_amount = total_amount
    batch.total_gst = total_gst
    session.flush()
    return batch
