"""
Utility functions and helpers for schedcord.

- **logger.py**: Centralized logging configuration with colored console output
  through prompt_toolkit and a per-session rotating log file. Suppresses noise
  from Discord and networking internals.

- **format_utils.py**: Timestamp and duration formatting and parsing, including
  Discord ``<t:...>`` markup.
"""
