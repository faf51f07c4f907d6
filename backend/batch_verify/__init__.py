"""
Batch verification client.
Submits identifier batches to the verification service, follows the event stream,
and reconciles per-identifier progress into an ordered result set.
"""
