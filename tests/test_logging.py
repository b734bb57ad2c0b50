from loguru import logger

from replyclaw.logs import configure_logging, log_verbose, set_verbose, should_log_verbose
from replyclaw.monitor.loggers import outbound_log


def test_verbose_lines_only_when_enabled() -> None:
    lines: list[str] = []
    configure_logging("INFO", verbose=False)
    sink_id = logger.add(lambda message: lines.append(message.record["message"]), level="DEBUG")
    try:
        log_verbose("hidden")
        set_verbose(True)
        assert should_log_verbose()
        log_verbose("shown")
    finally:
        set_verbose(False)
        logger.remove(sink_id)

    assert lines == ["shown"]


def test_subsystem_loggers_tag_records() -> None:
    records: list[dict] = []
    configure_logging("INFO")
    sink_id = logger.add(lambda message: records.append(message.record["extra"]), level="INFO")
    try:
        outbound_log.info("sent")
        logger.info("plain")
    finally:
        logger.remove(sink_id)

    assert [r["subsystem"] for r in records] == ["web-outbound", "replyclaw"]
