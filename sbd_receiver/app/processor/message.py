"""
Pipeline message contract.

The AS2 pipeline calls processor modules with an action name and a
message. This service only takes part in the ``store`` action, which the
pipeline runs for every successfully received AS2 message.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


ACTION_STORE = "store"


class AS2Message(BaseModel):
    """Decrypted, signature-checked AS2 message as handed over by the pipeline."""

    message_id: str = Field(..., min_length=1)
    data: bytes

    model_config = ConfigDict(frozen=True)
