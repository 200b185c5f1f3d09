"""Value types shared across schedcord: snowflake ids, actions, tasks and audit entries."""
