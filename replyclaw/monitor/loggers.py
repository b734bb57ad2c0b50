"""Subsystem loggers for the auto-reply monitor."""

from loguru import logger

inbound_log = logger.bind(subsystem="web-inbound")
outbound_log = logger.bind(subsystem="web-outbound")
reply_log = logger.bind(subsystem="web-reply")
