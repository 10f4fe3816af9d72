from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from services.common.addresses import AddressPolicy, check_address
from services.common.assets import parse_logo_uri
from services.common.images import read_image_kind

from .violations import Violation, ViolationKind, ViolationRecord, single

REQUIRED_FIELDS = ('chainId', 'address', 'name', 'symbol', 'decimals', 'logoURI')
LOGO_URI_SHAPES = 'a remote URL, ./logos/<address>.png, /assets/<chainId>/logos/<address>.png or a repository raw URL'


def display_path(path: Path, base: Path) -> str:
    try:
        return path.relative_to(base).as_posix()
    except ValueError:
        return path.as_posix()


class LogoInspector:
    """Checks each distinct local logo file once per chain.

    A problem with a file is reported on its first reference only; later
    references to the same file get no further violation.
    """

    def __init__(self, display_base: Path) -> None:
        self.display_base = display_base
        self._seen: dict[Path, Violation | None] = {}
        self.missing_files = 0
        self.invalid_files = 0

    def inspect(self, path: Path) -> Violation | None:
        if path in self._seen:
            return None

        shown = display_path(path, self.display_base)
        violation: Violation | None = None
        if not path.is_file():
            violation = Violation(ViolationKind.MISSING_LOGO_FILE, f'Logo file does not exist: {shown}')
            self.missing_files += 1
        else:
            try:
                kind = read_image_kind(path)
            except OSError as exc:
                violation = Violation(ViolationKind.INVALID_LOGO_FORMAT, f'Logo file cannot be read: {shown} ({exc})')
                self.invalid_files += 1
            else:
                if kind == 'unknown':
                    violation = Violation(
                        ViolationKind.INVALID_LOGO_FORMAT,
                        f'Logo file is not a valid PNG or JPEG image: {shown}'
                    )
                    self.invalid_files += 1

        self._seen[path] = violation
        return violation


@dataclass
class RuleContext:
    policy: AddressPolicy
    assets_dir: Path
    repository: str = ''
    chain_id: int | None = None
    logos: LogoInspector | None = None


@dataclass
class DocumentResult:
    file: str
    tokens: list[Any] | None = None
    records: list[ViolationRecord] = field(default_factory=list)
    warnings: list[ViolationRecord] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.records


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _token_label(token: Any, index: int) -> str:
    if isinstance(token, dict):
        address = token.get('address')
        if isinstance(address, str) and address.strip():
            return address
    return f'#{index}'


def _check_text_field(token: dict[str, Any], name: str) -> Violation | None:
    value = token[name]
    if not isinstance(value, str):
        return Violation(ViolationKind.TYPE_ERROR, f'{name} must be a string')
    if not value.strip():
        return Violation(ViolationKind.TYPE_ERROR, f'{name} must not be empty')
    return None


def _check_logo_uri(token: dict[str, Any], ctx: RuleContext) -> list[Violation]:
    logo_uri = token['logoURI']
    if not isinstance(logo_uri, str):
        return [Violation(ViolationKind.TYPE_ERROR, 'logoURI must be a string')]

    chain_id = ctx.chain_id
    if chain_id is None and _is_int(token['chainId']):
        chain_id = token['chainId']
    if chain_id is None:
        if logo_uri.startswith(('http://', 'https://')):
            return []
        return [Violation(ViolationKind.TYPE_ERROR, f"logoURI '{logo_uri}' cannot be resolved without a valid chainId")]

    reference = parse_logo_uri(logo_uri, chain_id, ctx.assets_dir, ctx.repository)
    if reference is None:
        return [Violation(ViolationKind.TYPE_ERROR, f'logoURI must be {LOGO_URI_SHAPES}')]
    if reference.local_path is None:
        return []

    violations: list[Violation] = []
    address = token['address']
    if reference.address is None or (isinstance(address, str) and reference.address.lower() != address.lower()):
        violations.append(
            Violation(ViolationKind.TYPE_ERROR, f"logoURI '{logo_uri}' does not reference the token address")
        )

    if ctx.logos is not None:
        logo_violation = ctx.logos.inspect(reference.local_path)
        if logo_violation is not None:
            violations.append(logo_violation)
    return violations


def validate_token(token: Any, ctx: RuleContext) -> list[Violation]:
    if not isinstance(token, dict):
        return [Violation(ViolationKind.TYPE_ERROR, 'token entry must be an object')]

    missing = [name for name in REQUIRED_FIELDS if name not in token]
    if missing:
        return [Violation(ViolationKind.FIELD_ERROR, f"Missing required field '{name}'") for name in missing]

    violations: list[Violation] = []

    chain_id = token['chainId']
    if not _is_int(chain_id):
        violations.append(Violation(ViolationKind.TYPE_ERROR, 'chainId must be an integer'))
    elif ctx.chain_id is not None and chain_id != ctx.chain_id:
        violations.append(
            Violation(ViolationKind.TYPE_ERROR, f'chainId {chain_id} does not match chain directory {ctx.chain_id}')
        )

    address = token['address']
    if not isinstance(address, str):
        violations.append(Violation(ViolationKind.TYPE_ERROR, 'address must be a string'))
    else:
        check = check_address(address, ctx.policy)
        if not check.valid:
            violations.append(Violation(ViolationKind.ADDRESS_FORMAT_ERROR, check.message or 'invalid address'))

    for name in ('name', 'symbol'):
        text_violation = _check_text_field(token, name)
        if text_violation is not None:
            violations.append(text_violation)

    decimals = token['decimals']
    if not _is_int(decimals) or decimals < 0:
        violations.append(Violation(ViolationKind.TYPE_ERROR, 'decimals must be a non-negative integer'))

    violations.extend(_check_logo_uri(token, ctx))
    return violations


def find_duplicate_addresses(tokens: list[Any]) -> Violation | None:
    groups: dict[str, list[str]] = {}
    for token in tokens:
        if not isinstance(token, dict):
            continue
        address = token.get('address')
        if not isinstance(address, str) or not address:
            continue
        groups.setdefault(address.lower(), []).append(address)

    duplicates = [literal for group in groups.values() if len(group) > 1 for literal in group]
    if not duplicates:
        return None
    return Violation(ViolationKind.DUPLICATE_ADDRESS, f"Duplicate addresses found: {', '.join(duplicates)}")


def find_chain_id_mismatch(tokens: list[Any]) -> Violation | None:
    distinct: dict[str, Any] = {}
    for token in tokens:
        if not isinstance(token, dict) or 'chainId' not in token:
            continue
        value = token['chainId']
        distinct.setdefault(json.dumps(value, sort_keys=True), value)

    if len(distinct) <= 1:
        return None
    values = ', '.join(str(value) for value in distinct.values())
    return Violation(ViolationKind.CHAIN_ID_MISMATCH, f'Multiple chainIds found: {values}')


def validate_document(raw: str | bytes, file: str, ctx: RuleContext) -> DocumentResult:
    result = DocumentResult(file=file)

    try:
        text = raw.decode('utf-8') if isinstance(raw, bytes) else raw
    except UnicodeDecodeError as exc:
        result.records.append(single(file, ViolationKind.PARSE_ERROR, f'File is not valid UTF-8: {exc}'))
        return result

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        result.records.append(single(file, ViolationKind.PARSE_ERROR, f'Invalid JSON: {exc}'))
        return result

    if not isinstance(payload, dict):
        result.records.append(single(file, ViolationKind.SCHEMA_ERROR, 'Document root must be an object'))
        return result
    tokens = payload.get('tokens')
    if not isinstance(tokens, list):
        result.records.append(single(file, ViolationKind.SCHEMA_ERROR, 'Missing "tokens" array'))
        return result

    result.tokens = tokens
    if '\n  "' not in text:
        result.warnings.append(
            single(file, ViolationKind.FORMAT_WARNING, 'File is not formatted with 2-space indentation')
        )
    if not tokens:
        result.warnings.append(single(file, ViolationKind.EMPTY_TOKEN_LIST, 'Document has an empty tokens array'))
        return result

    for index, token in enumerate(tokens):
        violations = validate_token(token, ctx)
        if violations:
            result.records.append(ViolationRecord(file=file, token=_token_label(token, index), violations=violations))

    duplicate = find_duplicate_addresses(tokens)
    if duplicate is not None:
        result.records.append(ViolationRecord(file=file, violations=[duplicate]))

    mismatch = find_chain_id_mismatch(tokens)
    if mismatch is not None:
        result.records.append(ViolationRecord(file=file, violations=[mismatch]))

    return result


def check_popular_subset(common: DocumentResult, popular: DocumentResult) -> list[ViolationRecord]:
    """Reports popular tokens absent from common, one record per address.

    Returns nothing when either document already failed, so earlier
    violations are not repeated as subset noise.
    """
    if not (common.valid and popular.valid):
        return []
    if common.tokens is None or popular.tokens is None:
        return []

    common_addresses = {
        token['address'].lower()
        for token in common.tokens
        if isinstance(token, dict) and isinstance(token.get('address'), str)
    }

    records: list[ViolationRecord] = []
    for token in popular.tokens:
        address = token.get('address') if isinstance(token, dict) else None
        if not isinstance(address, str) or address.lower() in common_addresses:
            continue
        records.append(
            single(
                popular.file,
                ViolationKind.SUBSET_VIOLATION,
                f'Token {address} not found in common.json',
                token=address
            )
        )
    return records
