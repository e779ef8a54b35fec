"""Stack comment rendering.

Every pull request in a stack carries one comment listing the whole stack,
trunk-most first, with its own entry highlighted. The footer identifies the
comment as ours and must never change, or existing comments stop being found.
"""

from typing import Sequence

STACK_COMMENT_FOOTER = "This stack of pull requests is managed by pyryu."
CURRENT_MARKER = "👈"

def render_stack_comment(numbers: Sequence[int], current_index: int, prefix: str = "#") -> str:
    """Render the managed comment body for the pull request at current_index."""
    if not 0 <= current_index < len(numbers):
        raise IndexError(f"current_index {current_index} out of range for {len(numbers)} entries")
    lines = []
    for i, number in enumerate(numbers):
        if i == current_index:
            lines.append(f"* **{prefix}{number} {CURRENT_MARKER}**")
        else:
            lines.append(f"* {prefix}{number}")
    return "\n".join(lines) + f"\n\n---\n{STACK_COMMENT_FOOTER}"

def is_managed_comment(body: str) -> bool:
    return STACK_COMMENT_FOOTER in body
