from gemach.db.store import Store

__all__ = ["Store"]
