import json
import logging
from pathlib import Path

import pytest

from repcon import logging as repcon_logging
from repcon.logging import setup_logging


@pytest.mark.unit
def test_setup_logging_attaches_json_file_handler(tmp_path: Path) -> None:
    log_file = tmp_path / "repcon.log"
    try:
        log = setup_logging(log_file)
        log.warning("sample_event", answer=42)

        record = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
    finally:
        handler = repcon_logging._FILE_HANDLERS.pop(str(log_file), None)
        if handler is not None:
            logging.getLogger().removeHandler(handler)
            handler.close()

    assert record["event"] == "sample_event"
    assert record["answer"] == 42
    assert record["level"] == "warning"
    assert "timestamp" in record
