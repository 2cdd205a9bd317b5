"""Extract the critic's <verdict> tag from free text."""

import re

from roundtable.models import Verdict

_VERDICT_RE = re.compile(r"<verdict>\s*(AGREE|DISAGREE)\s*</verdict>", re.IGNORECASE)


def parse_verdict(content: str) -> Verdict | None:
    """Return the single verdict marker in ``content``, or None.

    A missing marker, a malformed one, or more than one marker all count as
    an abstention. Never raises.
    """
    if not content:
        return None
    matches = _VERDICT_RE.findall(content)
    if len(matches) != 1:
        return None
    return Verdict(matches[0].upper())
