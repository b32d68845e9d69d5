# src/passa_gate/services/directory.py
"""Agreement terms supplied by the surrounding event records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Final, Protocol

AGREEMENT_PREFIX: Final[str] = "event_"


class Party(str, Enum):
    """The two key holders of an escrow agreement."""

    ARTIST = "artist"
    ORGANIZER = "organizer"


class AgreementNotFound(LookupError):
    """No agreement terms are known for the requested id."""


@dataclass(frozen=True)
class Payee:
    """Recipient of a fixed share of the released funds."""

    address: str
    fixed_amount: Decimal


@dataclass(frozen=True)
class AgreementTerms:
    """Everything needed to verify parties and create the on-chain agreement.

    `organizer_identity` and `artist_identity` are hex-encoded public keys;
    a submitted secret must derive to the one matching its party.
    """

    agreement_id: str
    event_id: int
    organizer_identity: str
    artist_identity: str
    payer_address: str
    budget: Decimal
    deadline: datetime
    payees: tuple[Payee, ...] = field(default_factory=tuple)

    def identity_for(self, party: Party) -> str:
        match party:
            case Party.ARTIST:
                return self.artist_identity
            case Party.ORGANIZER:
                return self.organizer_identity


def agreement_id_for_event(event_id: int) -> str:
    """Return the agreement id used for an event."""
    return f"{AGREEMENT_PREFIX}{event_id}"


class AgreementDirectory(Protocol):
    """Lookup of agreement terms owned by the event records."""

    def lookup(self, agreement_id: str) -> AgreementTerms:
        """Return terms for `agreement_id` or raise `AgreementNotFound`."""
        ...


class InMemoryAgreementDirectory:
    """Directory populated by the host application at wiring time."""

    def __init__(self, terms: list[AgreementTerms] | None = None) -> None:
        self._terms: dict[str, AgreementTerms] = {}
        for entry in terms or []:
            self.register(entry)

    def register(self, terms: AgreementTerms) -> None:
        if terms.agreement_id != agreement_id_for_event(terms.event_id):
            raise ValueError("agreement_id must be derived from event_id")
        if sum((payee.fixed_amount for payee in terms.payees), Decimal(0)) > terms.budget:
            raise ValueError("Payee amounts exceed the agreement budget")
        self._terms[terms.agreement_id] = terms

    def lookup(self, agreement_id: str) -> AgreementTerms:
        try:
            return self._terms[agreement_id]
        except KeyError:
            raise AgreementNotFound(agreement_id) from None
