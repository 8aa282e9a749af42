from facilitator_sync.sync.runner import WindowOutcome, run_sync, run_sync_window

__all__ = ["WindowOutcome", "run_sync", "run_sync_window"]
