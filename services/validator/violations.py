from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ViolationKind(str, Enum):
    PARSE_ERROR = 'ParseError'
    SCHEMA_ERROR = 'SchemaError'
    FIELD_ERROR = 'FieldError'
    TYPE_ERROR = 'TypeError'
    ADDRESS_FORMAT_ERROR = 'AddressFormatError'
    DUPLICATE_ADDRESS = 'DuplicateAddressError'
    CHAIN_ID_MISMATCH = 'ChainIdMismatchError'
    SUBSET_VIOLATION = 'SubsetViolationError'
    MISSING_DOCUMENT = 'MissingDocument'
    MISSING_LOGO_FILE = 'MissingLogoFile'
    INVALID_LOGO_FORMAT = 'InvalidLogoFormat'
    OVERSIZED_LOGO_FILE = 'OversizedLogoFile'
    UNREACHABLE_URL = 'UnreachableURL'
    # Warning-only kinds below never fail a run.
    MISSING_LOGO_DIRECTORY = 'MissingLogoDirectory'
    FORMAT_WARNING = 'FormatWarning'
    EMPTY_TOKEN_LIST = 'EmptyTokenList'
    CROSS_CHAIN_DUPLICATE = 'CrossChainDuplicate'


@dataclass(frozen=True)
class Violation:
    kind: ViolationKind
    message: str


@dataclass
class ViolationRecord:
    file: str
    token: str | None = None
    violations: list[Violation] = field(default_factory=list)

    @property
    def errors(self) -> list[str]:
        return [violation.message for violation in self.violations]

    def kinds(self) -> list[ViolationKind]:
        return [violation.kind for violation in self.violations]

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {'file': self.file}
        if self.token is not None:
            payload['token'] = self.token
        payload['errors'] = self.errors
        payload['kinds'] = [kind.value for kind in self.kinds()]
        return payload


def single(file: str, kind: ViolationKind, message: str, token: str | None = None) -> ViolationRecord:
    return ViolationRecord(file=file, token=token, violations=[Violation(kind, message)])
