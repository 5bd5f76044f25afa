"""
stock_batch -- Queued processing of order file uploads.

Uploaded print files are staged on disk and queued as jobs; a polling
worker claims each job, measures its files, attaches them to the order and
recomputes the order's aggregates, which charges material stock for the
added length.

Architecture:
    stock_batch/ is a top-level package.  Nothing in stock_kernel/ or
    stock_config/ imports from stock_batch.

Invariants:
    - Claim exclusivity via conditional UPDATE on status
    - FIFO by created_at, then seq (SequenceService)
    - Clock injection (no datetime.now() calls)
    - Attachments, recompute and COMPLETED commit together
    - Graceful shutdown between jobs
"""
