"""Daily GitHub pull-request standup generation library."""
