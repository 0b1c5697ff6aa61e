"""
Google Forms API wrapper used as the registration form service.

Provides a high-level interface to the Forms v1 API for:
- Opening and creating the registration form
- Deleting and adding items through batchUpdate
- Listing submitted responses with pagination
"""

import logging
from typing import Any, Optional

from session_signup.api.base import GoogleAPIClient, ResourceNotFound

FORM_EDIT_URL_TEMPLATE = "https://docs.google.com/forms/d/{form_id}/edit"

# Maximum responses per page when listing
DEFAULT_RESPONSE_PAGE_SIZE = 500

logger = logging.getLogger(__name__)


def form_edit_url(form_id: str) -> str:
    """Browser URL of the form editor."""
    return FORM_EDIT_URL_TEMPLATE.format(form_id=form_id)


# =============================================================================
# Item classification
# =============================================================================


def is_multiple_choice(item: dict[str, Any]) -> bool:
    """True if the item is a single-answer (radio) choice question."""
    question = item.get("questionItem", {}).get("question", {})
    choice = question.get("choiceQuestion")
    return bool(choice) and choice.get("type") == "RADIO"


def is_section_header(item: dict[str, Any]) -> bool:
    """True if the item is a title/description-only item."""
    return "textItem" in item


def question_titles(form: dict[str, Any]) -> dict[str, str]:
    """
    Map each question id of a form to its item title.

    Args:
        form: Form resource as returned by forms.get

    Returns:
        Dictionary of questionId -> title
    """
    titles: dict[str, str] = {}
    for item in form.get("items", []):
        question = item.get("questionItem", {}).get("question", {})
        question_id = question.get("questionId")
        if question_id:
            titles[question_id] = item.get("title", "")
    return titles


# =============================================================================
# batchUpdate request builders
# =============================================================================


def text_question_request(title: str, required: bool, index: int) -> dict[str, Any]:
    """Request that creates a short-answer text question."""
    return {
        "createItem": {
            "item": {
                "title": title,
                "questionItem": {
                    "question": {
                        "required": required,
                        "textQuestion": {"paragraph": False},
                    }
                },
            },
            "location": {"index": index},
        }
    }


def section_header_request(title: str, index: int) -> dict[str, Any]:
    """Request that creates a title-only item used as a section header."""
    return {
        "createItem": {
            "item": {"title": title, "textItem": {}},
            "location": {"index": index},
        }
    }


def multiple_choice_request(
    title: str, choices: list[str], index: int
) -> dict[str, Any]:
    """Request that creates a single-answer multiple-choice question."""
    return {
        "createItem": {
            "item": {
                "title": title,
                "questionItem": {
                    "question": {
                        "choiceQuestion": {
                            "type": "RADIO",
                            "options": [{"value": choice} for choice in choices],
                        }
                    }
                },
            },
            "location": {"index": index},
        }
    }


def delete_item_request(index: int) -> dict[str, Any]:
    """Request that deletes the item at a position."""
    return {"deleteItem": {"location": {"index": index}}}


class FormsAPI(GoogleAPIClient):
    """
    Google Forms API wrapper for form and response operations.

    Usage:
        forms = FormsAPI(credentials)

        form = forms.create_form("Registration")
        forms.batch_update(form["formId"], [
            text_question_request("Name", True, 0),
        ])

        responses = forms.list_responses(form["formId"])
    """

    api_name = "forms"
    api_version = "v1"

    def __init__(
        self,
        *args: Any,
        page_size: int = DEFAULT_RESPONSE_PAGE_SIZE,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.page_size = min(page_size, 5000)  # API max is 5000

    def get_form(self, form_id: str) -> dict[str, Any]:
        """
        Get a form with all of its items.

        Raises:
            ResourceNotFound: If the form does not exist
        """

        def execute_get() -> Any:
            return self.service.forms().get(formId=form_id).execute()

        form: dict[str, Any] = self._retry_with_backoff(
            execute_get, f"get_form({form_id})"
        )
        return form

    def resolve_form(self, form_id: str) -> Optional[dict[str, Any]]:
        """
        Get a form, returning None if it does not exist anymore.
        """
        try:
            return self.get_form(form_id)
        except ResourceNotFound:
            logger.info(f"Form {form_id} no longer exists")
            return None

    def create_form(self, title: str) -> dict[str, Any]:
        """
        Create an empty form.

        The API only accepts the title on creation; questions are added
        afterwards with batch_update.

        Returns:
            Created form resource (with "formId")
        """
        body = {"info": {"title": title, "documentTitle": title}}

        def execute_create() -> Any:
            return self.service.forms().create(body=body).execute()

        form: dict[str, Any] = self._retry_with_backoff(execute_create, "create_form")
        logger.info(f"Created form '{title}' ({form.get('formId')})")
        return form

    def batch_update(
        self, form_id: str, requests: list[dict[str, Any]]
    ) -> dict[str, Any]:
        """
        Apply a list of item requests to a form atomically.

        Args:
            form_id: Form to modify
            requests: createItem/deleteItem requests (see the builders above)

        Returns:
            The batchUpdate response
        """
        if not requests:
            return {}

        body = {"requests": requests}

        def execute_batch() -> Any:
            return (
                self.service.forms().batchUpdate(formId=form_id, body=body).execute()
            )

        response: dict[str, Any] = self._retry_with_backoff(
            execute_batch, f"batch_update_form({form_id})"
        )
        logger.debug(f"Applied {len(requests)} requests to form {form_id}")
        return response

    def publish(self, form_id: str) -> dict[str, Any]:
        """
        Publish a form so it accepts responses.

        Forms created through the API start unpublished.

        Returns:
            The form's updated publish settings
        """
        body = {
            "publishSettings": {
                "publishState": {"isPublished": True, "isAcceptingResponses": True}
            },
            "updateMask": "publishState",
        }

        def execute_publish() -> Any:
            return (
                self.service.forms()
                .setPublishSettings(formId=form_id, body=body)
                .execute()
            )

        response: dict[str, Any] = self._retry_with_backoff(
            execute_publish, f"publish_form({form_id})"
        )
        logger.info(f"Published form {form_id}")
        return response

    def list_responses(self, form_id: str) -> list[dict[str, Any]]:
        """
        List all responses submitted to a form.

        Returns:
            Response resources, each with "responseId" and "answers"
        """
        responses: list[dict[str, Any]] = []
        page_token: Optional[str] = None

        while True:
            params: dict[str, Any] = {"formId": form_id, "pageSize": self.page_size}
            if page_token:
                params["pageToken"] = page_token

            def execute_list(p: dict[str, Any] = params) -> Any:
                return self.service.forms().responses().list(**p).execute()

            response = self._retry_with_backoff(
                execute_list, f"list_responses({form_id})"
            )
            responses.extend(response.get("responses", []))

            page_token = response.get("nextPageToken")
            if not page_token:
                break

        logger.debug(f"Listed {len(responses)} responses for form {form_id}")
        return responses
