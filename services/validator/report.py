from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from .violations import ViolationKind, ViolationRecord

SEPARATOR = '-' * 35


@dataclass
class ChainReport:
    chain_id: int
    files_processed: int = 0
    valid_files: int = 0
    invalid_files: int = 0
    missing_logo_files: int = 0
    invalid_logo_files: int = 0
    logo_files_checked: int = 0
    records: list[ViolationRecord] = field(default_factory=list)
    warnings: list[ViolationRecord] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.invalid_files == 0 and self.missing_logo_files == 0 and self.invalid_logo_files == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            'chain_id': self.chain_id,
            'files_processed': self.files_processed,
            'valid_files': self.valid_files,
            'invalid_files': self.invalid_files,
            'missing_logo_files': self.missing_logo_files,
            'invalid_logo_files': self.invalid_logo_files,
            'logo_files_checked': self.logo_files_checked,
            'passed': self.passed
        }


@dataclass(frozen=True)
class ValidationReport:
    chains: tuple[ChainReport, ...] = ()

    def merge(self, chain: ChainReport) -> ValidationReport:
        return replace(self, chains=self.chains + (chain,))

    def _total(self, name: str) -> int:
        return sum(getattr(chain, name) for chain in self.chains)

    @property
    def files_processed(self) -> int:
        return self._total('files_processed')

    @property
    def valid_files(self) -> int:
        return self._total('valid_files')

    @property
    def invalid_files(self) -> int:
        return self._total('invalid_files')

    @property
    def missing_logo_files(self) -> int:
        return self._total('missing_logo_files')

    @property
    def invalid_logo_files(self) -> int:
        return self._total('invalid_logo_files')

    @property
    def records(self) -> list[ViolationRecord]:
        return [record for chain in self.chains for record in chain.records]

    @property
    def warnings(self) -> list[ViolationRecord]:
        return [record for chain in self.chains for record in chain.warnings]

    @property
    def passed(self) -> bool:
        return self.invalid_files == 0 and self.missing_logo_files == 0 and self.invalid_logo_files == 0

    def count(self, kind: ViolationKind) -> int:
        return sum(record.kinds().count(kind) for record in self.records)

    def to_dict(self) -> dict[str, Any]:
        return {
            'passed': self.passed,
            'summary': {
                'chains': len(self.chains),
                'files_processed': self.files_processed,
                'valid_files': self.valid_files,
                'invalid_files': self.invalid_files,
                'missing_logo_files': self.missing_logo_files,
                'invalid_logo_files': self.invalid_logo_files
            },
            'chains': [chain.to_dict() for chain in self.chains],
            'errors': [record.to_dict() for record in self.records],
            'warnings': [record.to_dict() for record in self.warnings]
        }


def _group_by_file(records: list[ViolationRecord]) -> dict[str, list[ViolationRecord]]:
    grouped: dict[str, list[ViolationRecord]] = {}
    for record in records:
        grouped.setdefault(record.file, []).append(record)
    return grouped


def _render_records(title: str, records: list[ViolationRecord]) -> list[str]:
    lines = [title]
    for file, file_records in _group_by_file(records).items():
        lines.append('')
        lines.append(f'File: {file}')
        for record in file_records:
            indent = '  '
            if record.token is not None:
                lines.append(f'  Token: {record.token}')
                indent = '    '
            for violation in record.violations:
                lines.append(f'{indent}- [{violation.kind.value}] {violation.message}')
    return lines


def render_text(report: ValidationReport) -> str:
    lines: list[str] = []
    if report.records:
        lines.extend(_render_records('Errors:', report.records))
        lines.append('')
    if report.warnings:
        lines.extend(_render_records('Warnings:', report.warnings))
        lines.append('')

    lines.extend(
        [
            SEPARATOR,
            'Validation Summary:',
            SEPARATOR,
            f'Chains: {len(report.chains)}',
            f'Total files: {report.files_processed}',
            f'Valid files: {report.valid_files}',
            f'Invalid files: {report.invalid_files}',
            f'Missing logo files: {report.missing_logo_files}',
            f'Invalid logo files: {report.invalid_logo_files}',
            f'Warnings: {len(report.warnings)}',
            ''
        ]
    )
    if report.passed:
        lines.append('PASS: all token lists and logo files are valid')
    else:
        lines.append('FAIL: token list validation found errors')
    return '\n'.join(lines)
