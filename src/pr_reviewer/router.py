"""Request routing and response envelopes for pr-reviewer.

The router is the single entry point used by the MCP server and the CLI. It
validates a request, dispatches it to the orchestrator and turns every
outcome into the same envelope shape::

    {"success": bool, "data": ..., "error": {"code", "message", "details"}}

``handle_request`` never raises. Malformed requests are rejected with
INVALID_REQUEST before the orchestrator is touched.
"""

from __future__ import annotations

import json
import uuid
from typing import Any, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pr_reviewer.errors import InternalError, InvalidRequestError, ReviewError
from pr_reviewer.logging import bind_review_context, get_logger, set_correlation_id
from pr_reviewer.review.orchestrator import ReviewOrchestrator

logger = get_logger(__name__)

Method = Literal[
    "start_review",
    "next_review_item",
    "reset_review",
    "review_status",
    "add_review_comment",
]


class ReviewRequest(BaseModel):
    """Envelope of an incoming operation request."""

    model_config = ConfigDict(extra="forbid")

    method: Method
    params: dict[str, Any] = Field(default_factory=dict)


class ReviewParams(BaseModel):
    """Parameters shared by every operation."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    pr_number: str = Field(alias="prNumber")

    @field_validator("pr_number", mode="before")
    @classmethod
    def coerce_pr_number(cls, v: Any) -> str:
        """Accept strings and integers, normalized to a non-empty string."""
        if isinstance(v, bool) or not isinstance(v, (str, int)):
            raise ValueError("prNumber must be a string or an integer")
        value = str(v).strip()
        if not value:
            raise ValueError("prNumber must not be empty")
        return value


class CommentParams(ReviewParams):
    """Parameters of add_review_comment."""

    file_path: str = Field(alias="filePath", min_length=1)
    line: int = Field(ge=1)
    text: str = Field(min_length=1)


def success_envelope(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data}


def error_envelope(code: str, message: str, details: Any = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {"success": False, "data": None, "error": error}


def _validation_details(error: ValidationError) -> Any:
    # Round-trip through JSON so exception objects in ctx become plain strings
    return json.loads(error.json(include_url=False))


class RequestRouter:
    """Validates requests and dispatches them to a ReviewOrchestrator."""

    def __init__(self, orchestrator: ReviewOrchestrator):
        self.orchestrator = orchestrator

    def _parse(self, request: Any) -> tuple[str, ReviewParams]:
        try:
            parsed = ReviewRequest.model_validate(request)
            params_model = (
                CommentParams if parsed.method == "add_review_comment" else ReviewParams
            )
            params = params_model.model_validate(parsed.params)
        except ValidationError as e:
            raise InvalidRequestError(
                "Invalid request format", details=_validation_details(e)
            ) from e
        return parsed.method, params

    async def handle_request(self, request: Any) -> dict[str, Any]:
        """Run one request and return its envelope."""
        set_correlation_id(uuid.uuid4().hex)
        try:
            method, params = self._parse(request)
            bind_review_context(params.pr_number)
            logger.info("request_received", method=method)
            data = await self._dispatch(method, params)
        except ReviewError as e:
            logger.warning("request_failed", code=e.code, error=e.message)
            return error_envelope(e.code, e.message, e.details)
        except Exception as e:
            logger.exception("request_crashed", error=str(e))
            return error_envelope("INTERNAL_ERROR", str(e) or type(e).__name__)
        finally:
            structlog.contextvars.unbind_contextvars("pr_id")
            set_correlation_id(None)

        return success_envelope(data)

    async def _dispatch(self, method: str, params: ReviewParams) -> Any:
        pr_id = params.pr_number
        if method == "start_review":
            return (await self.orchestrator.start_review(pr_id)).to_dict()
        if method == "next_review_item":
            return (await self.orchestrator.next_review_item(pr_id)).to_dict()
        if method == "reset_review":
            await self.orchestrator.reset_review(pr_id)
            return {"success": True}
        if method == "review_status":
            return await self.orchestrator.review_status(pr_id)
        if method == "add_review_comment" and isinstance(params, CommentParams):
            return await self.orchestrator.post_comment(
                pr_id, params.file_path, params.line, params.text
            )
        raise InternalError(f"No handler for method {method}", details={"method": method})

    async def start_review(self, pr_number: str | int) -> dict[str, Any]:
        return await self.handle_request(
            {"method": "start_review", "params": {"prNumber": pr_number}}
        )

    async def next_review_item(self, pr_number: str | int) -> dict[str, Any]:
        return await self.handle_request(
            {"method": "next_review_item", "params": {"prNumber": pr_number}}
        )

    async def reset_review(self, pr_number: str | int) -> dict[str, Any]:
        return await self.handle_request(
            {"method": "reset_review", "params": {"prNumber": pr_number}}
        )

    async def review_status(self, pr_number: str | int) -> dict[str, Any]:
        return await self.handle_request(
            {"method": "review_status", "params": {"prNumber": pr_number}}
        )

    async def add_review_comment(
        self, pr_number: str | int, file_path: str, line: int, text: str
    ) -> dict[str, Any]:
        return await self.handle_request(
            {
                "method": "add_review_comment",
                "params": {
                    "prNumber": pr_number,
                    "filePath": file_path,
                    "line": line,
                    "text": text,
                },
            }
        )
