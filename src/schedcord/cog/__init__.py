"""Discord cogs: ``commands`` holds slash commands, ``listener`` holds event and loop cogs."""
