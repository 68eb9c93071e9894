"""Built-in runbooks: step sequences for common Kali administration tasks."""
