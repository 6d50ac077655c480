"""ifconfig actuation, observed-state queries and HTTP access."""
