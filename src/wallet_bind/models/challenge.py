"""Challenge material issued by the GetBindNonce endpoint."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from wallet_bind.codec import render
from wallet_bind.exceptions import ParseError


class ChallengeTemplate(BaseModel):
    nonce: str = Field(min_length=1)
    message: str | None = None
    message_template: str | None = Field(default=None, alias="messageTemplate")
    issued_at: str | None = Field(default=None, alias="issuedAt")
    expire_at: str | None = Field(default=None, alias="expireAt")
    domain: str | None = None

    model_config = {"populate_by_name": True}

    @field_validator("issued_at", "expire_at", "domain", mode="before")
    @classmethod
    def _scalar_to_text(cls, value: Any) -> Any:
        # Timestamps occasionally arrive as epoch numbers
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    def render_for(self, wallet_address: str) -> str:
        """Build the exact text the wallet must sign for this nonce."""
        if self.message is None and self.message_template is None:
            raise ParseError("Nonce response carries neither message nor messageTemplate")
        return render(
            self.message_template,
            {
                "walletAddress": wallet_address,
                "nonce": self.nonce,
                "issuedAt": self.issued_at,
                "expireAt": self.expire_at,
                "domain": self.domain,
            },
            message=self.message,
        )


def parse_challenge(data: Any) -> ChallengeTemplate:
    """Decode a nonce payload, raising ParseError when it is unusable."""
    if not isinstance(data, dict):
        raise ParseError(f"Nonce response is not an object: {type(data).__name__}")
    try:
        return ChallengeTemplate.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise ParseError(f"Malformed nonce response ({fields})") from e
