from __future__ import annotations

import traceback as tb
from typing import Any
from typing import ClassVar
from typing import Iterable
from typing import TYPE_CHECKING

import pydantic
from pydantic import BaseModel
from pydantic import Field

if TYPE_CHECKING:
    from .base_models import Issue


def _stack() -> str:
    # Drop the frames inside pydantic's validator machinery and this module.
    return "".join(tb.format_stack(limit=8)[:-3])


class Decision(BaseModel, frozen=True):
    """Result of a choice, an input change, or a validation pass.

    Truthy when `success` is set, so callers can write `if character.choose(...)`.

    Attributes:
        success: True if the character is valid after the operation.
        reason: One line for the user. For a single issue this is
            "attribute: message"; several are summarized by count.
        attribute: The note attribute of the first issue, if any.
        issues: Every "attribute: message" problem found, in report order.
        mutation_applied: True if the character was changed. Invalid
            characters are still changed; dry runs never are.
        traceback: Where a failed decision was made. Pass traceback=True to
            capture one for a success too, or False to skip it.
    """

    success: bool = False
    reason: str = "Unknown"
    attribute: str | None = None
    issues: tuple[str, ...] = ()
    mutation_applied: bool = False
    traceback: str | None | bool = Field(default=None, repr=False)

    OK: ClassVar[Decision]
    NO: ClassVar[Decision]

    @pydantic.model_validator(mode="before")
    @classmethod
    def _capture_traceback(cls, data: Any) -> Any:
        if isinstance(data, dict):
            traceback = data.get("traceback")
            if traceback is True or (traceback is None and not data.get("success")):
                data["traceback"] = _stack()
            else:
                data["traceback"] = None
        return data

    @classmethod
    def fail(cls, reason: str, attribute: str | None = None) -> Decision:
        return cls(success=False, reason=reason, attribute=attribute)

    @classmethod
    def from_issues(cls, issues: Iterable[Issue], mutation_applied: bool = False) -> Decision:
        issues = list(issues)
        if not issues:
            return cls(success=True, reason="", mutation_applied=mutation_applied)
        lines = tuple(f"{i.attribute}: {i.reason}" for i in issues)
        if len(lines) == 1:
            reason = lines[0]
        else:
            reason = f"{len(lines)} issues detected, including: {issues[0].reason}"
        return cls(
            success=False,
            reason=reason,
            attribute=issues[0].attribute,
            issues=lines,
            mutation_applied=mutation_applied,
        )

    def __bool__(self) -> bool:
        return self.success


Decision.OK = Decision(success=True, reason="")
Decision.NO = Decision(success=False, reason="")
