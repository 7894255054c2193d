"""Prompts sent to the generation API when integrating accepted feedback."""

SYSTEM_PROMPT = (
    "You are an assistant in a collaborative engineering plan review system. "
    "You revise markdown plans in response to reviewer feedback. "
    "Only change what the feedback asks for, preserve the existing structure and "
    "markdown formatting, and keep the same level of technical detail. "
    "If the feedback is unclear, make your best interpretation."
)


def number_lines(text: str, start_line: int) -> str:
    """Prefix each line of *text* with its 1-based line number."""
    return "\n".join(
        f"{start_line + offset:>4} | {line}"
        for offset, line in enumerate(text.splitlines())
    )


def build_integration_prompt(
    document_text: str,
    excerpt: str,
    start_line: int,
    end_line: int,
    feedback: str,
) -> str:
    """Single user prompt embedding the full plan, the anchored excerpt and the feedback."""
    return (
        "Here is the full engineering plan:\n\n"
        f"<full_plan>\n{document_text}\n</full_plan>\n\n"
        f"A reviewer commented on lines {start_line}-{end_line}:\n\n"
        f"<commented_section>\n{number_lines(excerpt, start_line)}\n</commented_section>\n\n"
        f"<feedback>\n{feedback}\n</feedback>\n\n"
        "Rewrite the plan so that it addresses the feedback.\n\n"
        "Important:\n"
        "- Output the COMPLETE revised plan, not only the changed section\n"
        "- Do not include explanations, preambles, or commentary\n"
        "- Do not wrap the output in code fences\n"
        "- Keep changes minimal and targeted to the commented section unless the "
        "feedback requires otherwise"
    )


def format_feedback(comment_body: str, transcript: list[tuple[str, str]]) -> str:
    """Comment body, followed by the discussion transcript when there is one.

    Args:
        comment_body: The original comment text.
        transcript: ``(author_id, message)`` pairs in chronological order.
    """
    if not transcript:
        return comment_body
    lines = [f"Original comment: {comment_body}", "", "Discussion:"]
    lines.extend(f"- {author}: {message}" for author, message in transcript)
    return "\n".join(lines)
