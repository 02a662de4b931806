"""
Receipt Snap core pipeline.

Receipts:  decode → store image → extract → subscription → audit log.
Renewals:  due subscriptions → preferences / dedup → push fan-out → log.
"""
from receiptsnap.pipeline.devices import register_device  # noqa: F401
from receiptsnap.pipeline.parsing import ParseKind, ParseOutcome, parse_extraction  # noqa: F401
from receiptsnap.pipeline.pricing import calculate_cost  # noqa: F401
from receiptsnap.pipeline.receipts import process_receipt  # noqa: F401
from receiptsnap.pipeline.renewals import run_renewal_scan  # noqa: F401
