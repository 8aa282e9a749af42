"""
Allow-list filter: keep transfers sent by the configured facilitator.

Addresses are compared after lower-casing and collapsing leading zero padding
after the 0x prefix, so 0x00abc matches 0xABC. The configured address is first
canonicalized as a felt, the same way the decoder builds senders, so a decimal
address such as "2730" matches 0xaaa. Non-matching transfers are not errors,
just out of scope for this facilitator.
"""

from __future__ import annotations

import re
from typing import Iterable

from facilitator_sync.core.exceptions import ConfigurationError, FeltError
from facilitator_sync.starknet.felt import felt_to_hex
from facilitator_sync.starknet.models import NormalizedTransfer

_LEADING_ZEROS_RE = re.compile(r"^0x0+")


def normalize_address(address: str) -> str:
    return _LEADING_ZEROS_RE.sub("0x", (address or "").strip().lower())


class FacilitatorFilter:
    def __init__(self, facilitator_address: str) -> None:
        if not (facilitator_address or "").strip():
            raise ConfigurationError("facilitator address is required for filtering")
        try:
            canonical = felt_to_hex(facilitator_address)
        except FeltError as e:
            raise ConfigurationError(f"facilitator address is not a valid felt: {facilitator_address!r}") from e
        self._normalized = normalize_address(canonical)

    @property
    def normalized_address(self) -> str:
        return self._normalized

    def matches(self, transfer: NormalizedTransfer) -> bool:
        return normalize_address(transfer.sender) == self._normalized

    def apply(self, transfers: Iterable[NormalizedTransfer]) -> list[NormalizedTransfer]:
        return [t for t in transfers if self.matches(t)]
