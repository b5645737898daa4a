"""Challenge message rendering.

The server hands out a template such as
``"Sign in {walletAddress} with {nonce} at {issuedAt}"``; the wallet is asked to
sign the rendered text. Rendering is a plain text replace, the cryptographic
binding comes from the signature over the result.
"""

from __future__ import annotations

import re
from typing import Mapping

PLACEHOLDERS = ("walletAddress", "nonce", "issuedAt", "expireAt", "domain")

_PLACEHOLDER_RE = re.compile(r"\{(" + "|".join(PLACEHOLDERS) + r")\}")


def render(
    template: str | None,
    values: Mapping[str, object | None],
    message: str | None = None,
) -> str:
    """Render a challenge message.

    Args:
        template: Server-supplied template. Unknown ``{placeholders}`` are kept.
        values: Substitution values keyed by placeholder name. Missing or
            ``None`` values render as an empty string.
        message: Literal message from the server. When given it is returned
            unchanged and the template is ignored.

    Returns:
        The text the wallet must sign.
    """
    if message is not None:
        return message
    if template is None:
        return ""

    def _sub(match: re.Match[str]) -> str:
        value = values.get(match.group(1))
        return "" if value is None else str(value)

    # Single pass, so a value containing "{nonce}" is never substituted again
    return _PLACEHOLDER_RE.sub(_sub, template)
