"""
User Directory
==============
Resolves a verified identifier to a stable subject.
"""

import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol

import structlog

from .identity import IdentifierKind, mask_identifier, normalize_identifier

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Subject:
    subject_id: str
    claims: Dict[str, Any] = field(default_factory=dict)


class UserDirectory(Protocol):
    """Consulted only after verification or bypass succeeds."""

    def find_or_create_subject(self, identifier: str, kind: IdentifierKind) -> Subject: ...


DEMO_USERS: List[Dict[str, Any]] = [
    {"id": "patient_1", "name": "Demo Patient", "phone": "9876543210",
     "email": "patient@demo.com", "user_type": "patient"},
    {"id": "doctor_1", "name": "Dr. Demo", "phone": "9876543230",
     "email": "doctor@demo.com", "user_type": "doctor"},
    {"id": "asha_1", "name": "Demo ASHA Worker", "phone": "9876543220",
     "email": "asha@demo.com", "user_type": "asha"},
]


class InMemoryUserDirectory:
    """
    Process-local directory for demos and tests.

    Unknown identifiers are registered on first verification as patients.
    """

    def __init__(self, users: Optional[Iterable[Dict[str, Any]]] = None, country_code: str = "91"):
        self._subjects: Dict[str, Subject] = {}
        self._lock = threading.Lock()
        for user in users or []:
            self._register(user, country_code)

    @classmethod
    def with_demo_users(cls, country_code: str = "91") -> "InMemoryUserDirectory":
        return cls(DEMO_USERS, country_code)

    def _register(self, user: Dict[str, Any], country_code: str) -> None:
        for kind, raw in ((IdentifierKind.PHONE, user.get("phone")), (IdentifierKind.EMAIL, user.get("email"))):
            if not raw:
                continue
            identifier = normalize_identifier(raw, country_code)
            self._subjects[identifier] = Subject(
                subject_id=user["id"],
                claims={
                    "identifier": identifier,
                    "kind": kind.value,
                    "user_type": user.get("user_type", "patient"),
                    "name": user.get("name"),
                },
            )

    def find_or_create_subject(self, identifier: str, kind: IdentifierKind) -> Subject:
        with self._lock:
            subject = self._subjects.get(identifier)
            if subject is None:
                subject = Subject(
                    subject_id=str(uuid.uuid4()),
                    claims={
                        "identifier": identifier,
                        "kind": IdentifierKind(kind).value,
                        "user_type": "patient",
                    },
                )
                self._subjects[identifier] = subject
                logger.info(
                    "Subject registered",
                    identifier=mask_identifier(identifier),
                    subject_id=subject.subject_id,
                )
            return subject

    def __len__(self) -> int:
        with self._lock:
            return len(self._subjects)
