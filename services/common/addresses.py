from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from web3 import Web3

ADDRESS_PATTERN = re.compile(r'0x[a-fA-F0-9]{40}')


class AddressPolicy(str, Enum):
    CHECKSUM = 'checksum'
    LOWERCASE = 'lowercase'


ADDRESS_POLICY_CHOICES = [policy.value for policy in AddressPolicy]


@dataclass(frozen=True)
class AddressCheck:
    valid: bool
    canonical: str | None
    message: str | None = None


def parse_policy(value: str | None) -> AddressPolicy | None:
    raw = str(value or '').strip().lower()
    if not raw:
        return None
    try:
        return AddressPolicy(raw)
    except ValueError as exc:
        raise ValueError(
            f"unknown address policy '{value}', expected one of: {', '.join(ADDRESS_POLICY_CHOICES)}"
        ) from exc


def is_evm_address(value: str) -> bool:
    return bool(ADDRESS_PATTERN.fullmatch(str(value).strip()))


def canonical_address(value: str, policy: AddressPolicy) -> str:
    checksummed = Web3.to_checksum_address(value)
    if policy is AddressPolicy.LOWERCASE:
        return checksummed.lower()
    return checksummed


def check_address(value: str, policy: AddressPolicy) -> AddressCheck:
    # Web3.is_address rejects a bad mixed-case checksum outright, so the
    # syntax check stays a plain pattern and casing is compared afterwards.
    if not ADDRESS_PATTERN.fullmatch(value):
        return AddressCheck(False, None, f"address '{value}' is not a valid address")

    canonical = canonical_address(value, policy)
    if value == canonical:
        return AddressCheck(True, canonical)

    if policy is AddressPolicy.LOWERCASE:
        return AddressCheck(False, canonical, f"address '{value}' is not lowercase (expected '{canonical}')")
    return AddressCheck(
        False,
        canonical,
        f"address '{value}' is not a valid checksum address (expected '{canonical}')"
    )


def logo_filename(address: str) -> str:
    return f'{address.strip().lower()}.png'
