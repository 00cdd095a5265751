"""Wire encoders."""

from statpool.core.encoding.envelope import (
    encode_envelope,
    encode_stat,
    recovery_payload,
)

__all__ = ["encode_envelope", "encode_stat", "recovery_payload"]
