"""Debate transcript formatting and splitting of two-part synthesis output."""

import logging
import re

logger = logging.getLogger(__name__)

_PART_TWO_RE = re.compile(
    r"^[ \t]*(?P<hashes>#{1,6}[ \t]*)?(?P<open>\*\*|__)?[ \t]*"
    r"(?:part[ \t]*(?:2|two|ii)\b(?:[ \t]*[-:\u2013\u2014][ \t]*[a-z ]*summary)?|debate[ \t]+summary)"
    r"[ \t]*(?P<colon>:)?[ \t]*(?P<close>\*\*|__)?[ \t]*(?P<colon2>:)?[ \t]*",
    re.IGNORECASE | re.MULTILINE,
)

_PART_ONE_RE = re.compile(
    r"\A\s*(?P<hashes>#{1,6}[ \t]*)?(?P<open>\*\*|__)?[ \t]*"
    r"part[ \t]*(?:1|one|i)\b(?:[ \t]*[-:\u2013\u2014][ \t]*[a-z ]*answer)?"
    r"[ \t]*(?P<colon>:)?[ \t]*(?P<close>\*\*|__)?[ \t]*(?P<colon2>:)?[ \t]*",
    re.IGNORECASE,
)

_RULE_RE = re.compile(r"(?:-{3,}|\*{3,}|_{3,})")

# Shorter paragraphs are too generic to count as an echoed summary.
_MIN_ECHO_CHARS = 20


def format_feedback(critic_name: str, content: str) -> str:
    """One critic's contribution to a round's accumulated feedback."""
    return f"\n\n**{critic_name}:**\n{content}"


def format_round_transcript(round_number: int, proposer_name: str, answer: str, feedback: str) -> str:
    """The block appended to the debate history at the end of each round."""
    return f"\n\n--- Round {round_number} ---\n**{proposer_name}:**\n{answer}{feedback}"


def _is_heading(match: re.Match, text: str) -> bool:
    if match.group("hashes") or match.group("open") or match.group("colon") or match.group("colon2"):
        return True
    line_end = text.find("\n", match.end())
    rest = text[match.end():] if line_end == -1 else text[match.end():line_end]
    return not rest.strip()


def _normalize(text: str) -> str:
    text = re.sub(r"[*_`#>]", "", text.lower())
    return re.sub(r"\s+", " ", text).strip()


def strip_echoed_summary(answer: str, summary: str) -> str:
    """Drop trailing paragraphs of ``answer`` that repeat ``summary``.

    Comparison ignores case, whitespace and emphasis markers. The first
    paragraph is always kept.
    """
    norm_summary = _normalize(summary)
    paragraphs = [p for p in re.split(r"\n[ \t]*\n", answer.strip()) if p.strip()]
    while len(paragraphs) > 1:
        last = paragraphs[-1].strip()
        norm = _normalize(last)
        if not norm or _RULE_RE.fullmatch(last):
            paragraphs.pop()
            continue
        if norm_summary and len(norm) >= _MIN_ECHO_CHARS and (norm in norm_summary or norm_summary in norm):
            logger.debug("Stripping echoed summary paragraph from synthesis answer")
            paragraphs.pop()
            continue
        break
    return "\n\n".join(paragraphs).strip()


def _strip_part_one_heading(text: str) -> str:
    match = _PART_ONE_RE.match(text)
    if match and _is_heading(match, text):
        return text[match.end():]
    return text


def _find_part_two(text: str) -> re.Match | None:
    for match in _PART_TWO_RE.finditer(text):
        if _is_heading(match, text):
            return match
    return None


def split_synthesis(text: str) -> tuple[str, str | None]:
    """Split synthesis output into (final_answer, summary).

    The summary is whatever follows the first "PART 2" / "Debate Summary"
    heading. When no such heading exists the summary is None and the whole
    text is the answer.
    """
    match = _find_part_two(text)
    if match is None:
        return text.strip(), None

    summary = text[match.end():].strip()
    answer = _strip_part_one_heading(text[:match.start()]).strip()
    answer = strip_echoed_summary(answer, summary)
    if not answer:
        logger.warning("Synthesis had an empty first part; using full output as the answer")
        return text.strip(), summary or None
    return answer, summary or None
