"""Operator interaction for collecting deployment input."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from rich.console import Console
from rich.prompt import Prompt

logger = logging.getLogger(__name__)


class InputType(str, Enum):
    """Type of operator input expected."""
    TEXT = "text"           # free text, echoed
    SECRET = "secret"       # tokens and passwords, never echoed


@dataclass(frozen=True)
class InteractionRequest:
    """A single prompt shown to the operator."""

    key: str                                    # stable identifier, e.g. "repo_url"
    question: str
    input_type: InputType = InputType.TEXT
    default: Optional[str] = None

    def format_prompt(self) -> str:
        """Format the question, with the default in brackets when there is one."""
        if self.default:
            return f"{self.question} [{self.default}]"
        return self.question


@dataclass
class InteractionResponse:
    """Operator's answer to an interaction request."""

    value: str
    cancelled: bool = False

    @classmethod
    def cancelled_response(cls) -> "InteractionResponse":
        return cls(value="", cancelled=True)


class UserInteractionHandler(ABC):
    """Abstract base class for handling operator interactions."""

    @abstractmethod
    def ask(self, request: InteractionRequest) -> InteractionResponse:
        """Present a request to the operator and return the answer."""

    @abstractmethod
    def notify(self, message: str, level: str = "info") -> None:
        """Show a message that needs no answer."""


class CLIInteractionHandler(UserInteractionHandler):
    """Terminal prompts rendered through rich."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console(highlight=False)

    def ask(self, request: InteractionRequest) -> InteractionResponse:
        try:
            value = Prompt.ask(
                f"[bold]{request.question}[/bold]",
                console=self.console,
                password=request.input_type == InputType.SECRET,
                default=request.default or "",
                show_default=bool(request.default) and request.input_type != InputType.SECRET,
            )
        except (KeyboardInterrupt, EOFError):
            self.console.print()
            return InteractionResponse.cancelled_response()
        return InteractionResponse(value=(value or "").strip())

    def notify(self, message: str, level: str = "info") -> None:
        styles = {
            "info": "blue",
            "warning": "yellow",
            "error": "red",
            "success": "green",
        }
        self.console.print(message, style=styles.get(level, ""))


class AutoResponseHandler(UserInteractionHandler):
    """
    Non-interactive handler answering from a predefined mapping.

    Requests whose key is missing from the mapping receive their default,
    or an empty string when there is none.
    """

    def __init__(self, responses: Optional[Dict[str, str]] = None) -> None:
        self.responses = dict(responses or {})
        self.asked: list[str] = []
        self.notifications: list[tuple[str, str]] = []

    def ask(self, request: InteractionRequest) -> InteractionResponse:
        self.asked.append(request.key)
        if request.key in self.responses:
            return InteractionResponse(value=self.responses[request.key])
        return InteractionResponse(value=request.default or "")

    def notify(self, message: str, level: str = "info") -> None:
        self.notifications.append((level, message))
        logger.debug("[%s] %s", level, message)
