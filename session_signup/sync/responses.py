"""
Registration response processing.

The response processor plays the part of a form-submit trigger: it lists
the responses of the registered form, converts each into named values
(question title -> answers) and hands every response it has not handled
before to the engine. A response is recorded as handled only after the
engine succeeded, so a failure is retried on the next run.
"""

import logging
from dataclasses import dataclass
from typing import Any

from session_signup.api.base import GoogleAPIError, TransientUnavailable
from session_signup.api.forms_api import FormsAPI, question_titles
from session_signup.storage.db import SyncDatabase
from session_signup.storage.registry import FORM_ID_KEY, ResourceRegistry, require
from session_signup.sync.engine import NO_FORM_MESSAGE, ConferenceEngine

logger = logging.getLogger(__name__)


def named_values(
    response: dict[str, Any], titles: dict[str, str]
) -> dict[str, list[str]]:
    """
    Convert a Forms API response into question title -> answers.

    Args:
        response: Response resource from forms.responses.list
        titles: questionId -> title mapping of the form

    Returns:
        Dictionary of title -> list of text answers; answers to questions
        that are no longer on the form are dropped
    """
    values: dict[str, list[str]] = {}
    for question_id, answer in response.get("answers", {}).items():
        title = titles.get(question_id)
        if title is None:
            continue
        text_answers = answer.get("textAnswers", {}).get("answers", [])
        values[title] = [a.get("value", "") for a in text_answers]
    return values


def _submitted_at(response: dict[str, Any]) -> str:
    # RFC 3339 timestamps in UTC sort lexicographically
    return str(response.get("lastSubmittedTime") or response.get("createTime") or "")


@dataclass
class ProcessStats:
    """Counts from one processing run."""

    responses: int = 0
    processed: int = 0
    already_processed: int = 0
    failed: int = 0
    invitations: int = 0

    def summary(self) -> str:
        lines = [
            "Registration Summary:",
            f"  Responses on form: {self.responses}",
            f"  Newly processed: {self.processed}",
            f"  Already processed: {self.already_processed}",
            f"  Invitations sent: {self.invitations}",
        ]
        if self.failed:
            lines.append(f"  Failed (retried next run): {self.failed}")
        return "\n".join(lines)


class ResponseProcessor:
    """
    Handles each registration response of the stored form exactly once.

    Usage:
        processor = ResponseProcessor(engine, forms, registry, database)
        stats = processor.process_new_responses()

        # As a scheduler callback
        scheduler.set_callback(processor.run_once)
    """

    def __init__(
        self,
        engine: ConferenceEngine,
        forms: FormsAPI,
        registry: ResourceRegistry,
        database: SyncDatabase,
    ):
        self.engine = engine
        self.forms = forms
        self.registry = registry
        self.database = database

    def process_new_responses(self) -> ProcessStats:
        """
        Handle every response not processed before, oldest first.

        The session list is read once per run and shared by all responses.

        Returns:
            ProcessStats for this run

        Raises:
            ConfigMissing: If no form has been set up
            TransientUnavailable: If an API stays unavailable; responses
                                  handled before the failure stay recorded
        """
        form_id = require(self.registry, FORM_ID_KEY, NO_FORM_MESSAGE)
        stats = ProcessStats()

        form = self.forms.get_form(form_id)
        titles = question_titles(form)
        responses = sorted(self.forms.list_responses(form_id), key=_submitted_at)
        stats.responses = len(responses)

        pending = [
            r
            for r in responses
            if not self.database.is_response_processed(form_id, r["responseId"])
        ]
        stats.already_processed = len(responses) - len(pending)
        if not pending:
            logger.debug(f"No new responses on form {form_id}")
            return stats

        sessions, _ = self.engine.read_sessions()

        for response in pending:
            response_id = response["responseId"]
            try:
                result = self.engine.handle_submission(
                    named_values(response, titles), sessions=sessions
                )
            except TransientUnavailable:
                raise
            except GoogleAPIError as e:
                logger.error(f"Failed to process response {response_id}: {e}")
                stats.failed += 1
                continue

            self.database.mark_response_processed(
                form_id,
                response_id,
                registrant_email=result.email,
                sessions_joined=result.sessions_joined,
            )
            stats.processed += 1
            stats.invitations += len(result.invited)

        logger.info(
            f"Processed {stats.processed} new responses "
            f"({stats.invitations} invitations, {stats.failed} failed)"
        )
        return stats

    def run_once(self) -> bool:
        """
        Scheduler callback: process new responses, reporting success.

        Returns:
            True if every pending response was handled
        """
        stats = self.process_new_responses()
        return stats.failed == 0
