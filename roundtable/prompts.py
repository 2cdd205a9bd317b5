"""Pure builders for the user-message text of each debate role."""

_ATTACHMENT_NOTE = (
    "[Note: Image/document attached. Please carefully analyze all visible content "
    "including any text, equations, diagrams, tables, or other visual information.]"
)

_CRITIC_ATTACHMENT_NOTE = (
    "[Note: The user attached an image/document. Verify that the proposed answer uses "
    "all relevant information from the attachment, and include anything the proposer missed.]"
)

_REVISION_ATTACHMENT_NOTE = (
    "**Attachment note:** If reviewers extracted information from the attached "
    "image/document that you missed, incorporate it into your revision."
)


def build_proposer_message(user_prompt: str, has_attachments: bool = False) -> str:
    if has_attachments:
        return f"{user_prompt}\n\n{_ATTACHMENT_NOTE}"
    return user_prompt


def build_revision_message(
    user_prompt: str,
    previous_answer: str,
    debate_history: str,
    has_attachments: bool = False,
) -> str:
    """Ask the proposer to revise, given every prior round of the debate."""
    message = (
        "**Review the discussion below and address each point of feedback in your revised answer.**\n\n"
        f"**Debate so far:**\n{debate_history.strip()}\n\n"
        "---\n\n"
        f"**Original Question:**\n{user_prompt}\n\n"
        f"**Your Previous Answer:**\n{previous_answer}\n\n"
        "---\n\n"
        "**Your task:** Provide a revised answer that directly addresses the feedback. "
        "If critics raised valid points, incorporate their corrections. If you believe "
        "your previous answer was correct, explain why with clear reasoning."
    )
    if has_attachments:
        message += f"\n\n{_REVISION_ATTACHMENT_NOTE}"
    return message


def build_critic_message(
    user_prompt: str,
    proposed_answer: str,
    prior_feedback: str = "",
    has_attachments: bool = False,
) -> str:
    message = f"**User's Question:**\n{user_prompt}\n\n**Proposed Answer:**\n{proposed_answer}"
    if prior_feedback.strip():
        message += f"\n\n**Prior Discussion:**\n{prior_feedback.strip()}"
    if has_attachments:
        message += f"\n\n{_CRITIC_ATTACHMENT_NOTE}"
    return message


def build_synthesis_message(user_prompt: str, debate_history: str) -> str:
    return (
        f"**Original Question:**\n{user_prompt}\n\n"
        f"**Full Debate History:**\n{debate_history.strip()}\n\n"
        "Provide your response in two parts as specified: "
        "PART 1 (Best Answer with attribution) and PART 2 (Debate Summary)."
    )


def build_summary_message(user_prompt: str, debate_history: str, final_answer: str) -> str:
    return (
        f"**Question:**\n{user_prompt}\n\n"
        f"**Debate:**\n{debate_history.strip()}\n\n"
        f"**Final Answer:**\n{final_answer}"
    )
