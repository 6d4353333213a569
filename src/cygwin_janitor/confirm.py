"""!
@brief Per-step confirmation prompts for interactive runs.
@details Every destructive step asks on its own. The default answer is "no":
an empty reply, anything other than ``y``/``yes``, or a closed stdin declines
the step. The prompt blocks without a timeout.
"""

from __future__ import annotations

from typing import Callable, Sequence

InputFunc = Callable[[str], str]

_MAX_LISTED = 15


def format_prompt(title: str, items: Sequence[object] = ()) -> str:
    """!
    @brief Build the prompt text, listing at most a screenful of items.
    """

    lines = []
    if items:
        lines.append(f"{title}: {len(items)} item(s)")
        for item in list(items)[:_MAX_LISTED]:
            lines.append(f"  - {item}")
        if len(items) > _MAX_LISTED:
            lines.append(f"  ... and {len(items) - _MAX_LISTED} more")
    lines.append(f"{title}? [y/N] ")
    return "\n".join(lines)


def request_step_confirmation(
    title: str,
    items: Sequence[object] = (),
    *,
    input_func: InputFunc | None = None,
) -> bool:
    """!
    @brief Ask the operator whether ``title`` should run.
    @param title Short description of the step.
    @param items Discovered items shown before the question.
    @param input_func Input function override for tests and front-ends.
    @returns ``True`` only for an explicit ``y``/``yes``.
    """

    if input_func is None:
        input_func = input
    try:
        response = input_func(format_prompt(title, items))
    except EOFError:
        return False
    return response.strip().lower() in ("y", "yes")


__all__ = ["InputFunc", "format_prompt", "request_step_confirmation"]
