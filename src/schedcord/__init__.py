"""
schedcord - Discord moderation bot with a persistent task scheduler

Core Components:

- **Scheduler**: An ordered, persisted list of scheduled tasks (add/remove a
  role, post a message, unban) that a polling loop executes when due, with
  relative, daily, weekly and yearly repeats
- **Action Codec**: A small text language used to enter and display tasks
  (``addrole <role> to <user> because <reason>``)
- **Departure Correlator**: Guesses whether a departing member was banned,
  kicked or left by matching recent audit log entries, and cancels the
  member's pending tasks
- **Commands**: ``/schedule`` slash commands for inspecting and editing tasks

Usage:
    from schedcord.main import main
    main()
"""
