"""
Scheduled task engine.

- **action_codec.py**: Text encoding and decoding of scheduled actions.
- **task_store.py**: The single ordered, persisted list of scheduled tasks.
- **task_scheduler.py**: Runs due tasks and retires or reschedules them.
- **task_listing.py**: Text rendering of the task list for commands.
"""
