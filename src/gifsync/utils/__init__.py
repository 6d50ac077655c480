"""Resolution, validation, diff, apply and teardown engines."""
