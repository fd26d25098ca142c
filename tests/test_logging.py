import asyncio
import json
import logging

import pytest

from app.core.logging import LogContext, StructuredFormatter, get_logger

logger = get_logger("tests.logging")


def records_by_message(caplog):
    return {record.getMessage(): record for record in caplog.records}


def test_nested_contexts_merge_and_unwind(caplog):
    caplog.set_level(logging.INFO)

    with LogContext(session_id="s-1"):
        with LogContext(persona="presse"):
            logger.info("inner")
        logger.info("outer")
    logger.info("outside")

    records = records_by_message(caplog)
    assert records["inner"].session_id == "s-1"
    assert records["inner"].persona == "presse"
    assert not hasattr(records["outer"], "persona")
    assert not hasattr(records["outside"], "session_id")


@pytest.mark.asyncio
async def test_interleaved_tasks_keep_their_own_context(caplog):
    caplog.set_level(logging.INFO)
    a_entered = asyncio.Event()
    b_entered = asyncio.Event()
    a_exited = asyncio.Event()

    async def task_a():
        with LogContext(session_id="A"):
            a_entered.set()
            await b_entered.wait()
            logger.info("from A")
        a_exited.set()

    async def task_b():
        await a_entered.wait()
        with LogContext(session_id="B"):
            b_entered.set()
            await a_exited.wait()
            logger.info("from B")

    await asyncio.gather(task_a(), task_b())
    logger.info("after both")

    records = records_by_message(caplog)
    assert records["from A"].session_id == "A"
    assert records["from B"].session_id == "B"
    assert not hasattr(records["after both"], "session_id")


def test_structured_formatter_renders_context(caplog):
    caplog.set_level(logging.INFO)

    with LogContext(sequence_id="seq-1", lead_email="c***n@orange.fr"):
        logger.info("Envoi programmé")

    payload = json.loads(StructuredFormatter().format(caplog.records[-1]))
    assert payload["message"] == "Envoi programmé"
    assert payload["sequence_id"] == "seq-1"
    assert payload["lead_email"] == "c***n@orange.fr"
    assert payload["logger"] == "gironde.tests.logging"
