"""
Configuration management for schedcord.

- **app_configuration.py**: YAML configuration loader for global settings
  (managed guild, mod log channel, database path, scheduler poll interval,
  departure correlation window and new-member role handling). Falls back to
  defaults on missing or malformed config files.
"""
