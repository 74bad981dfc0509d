"""Core building blocks: configuration, exceptions, interfaces and logging."""
