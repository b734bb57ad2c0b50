"""replyclaw - inbound auto-reply dispatch for chat channels."""

__version__ = "0.1.0"
