"""
Queue engine services.

- Take a Session plus plain ids and values; never see HTTP objects
- queue_store / game_ledger write but never commit; queue_engine owns the
  transaction and everything that happens after commit
- rotation_policy and notification_trigger are pure decisions
"""
