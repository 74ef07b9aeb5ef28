"""Reporter and logging handlers."""

from __future__ import annotations

import io
import json
import logging

from weft.log import configure_logging, disable_cli_log, enable_cli_log, report


class TestReport:
    """``report`` messages through the configured handler."""

    def test_text_format(self):
        buf = io.StringIO()
        configure_logging("info", "text", buf)
        report("Added identity", val="admin")
        report("plain")
        report("broken", error=True)
        assert buf.getvalue().splitlines() == ["Added identity: admin", "plain", "ERROR: broken"]

    def test_json_format(self):
        buf = io.StringIO()
        configure_logging("info", "json", buf)
        report("Exported identity", val="admin -> out.json")
        event = json.loads(buf.getvalue())
        assert event["level"] == "info"
        assert event["logger"] == "weft.report"
        assert event["message"] == "Exported identity"
        assert event["context"] == {"msg": "Exported identity", "val": "admin -> out.json"}

    def test_quiet_keeps_errors(self):
        buf = io.StringIO()
        configure_logging("info", "text", buf)
        disable_cli_log()
        report("hidden")
        report("shown", error=True)
        enable_cli_log()
        assert buf.getvalue() == "ERROR: shown\n"

    def test_level_filters_module_loggers(self):
        buf = io.StringIO()
        configure_logging("warning", "text", buf)
        logging.getLogger("weft.topology").info("not shown")
        logging.getLogger("weft.topology").warning("shown")
        assert buf.getvalue() == "shown\n"

    def test_reconfigure_replaces_handler(self):
        first, second = io.StringIO(), io.StringIO()
        configure_logging("info", "text", first)
        configure_logging("info", "text", second)
        report("once")
        assert first.getvalue() == ""
        assert second.getvalue() == "once\n"
