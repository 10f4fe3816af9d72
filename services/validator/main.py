from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path

from services.common.addresses import ADDRESS_POLICY_CHOICES, AddressPolicy, parse_policy
from services.common.assets import (
    AssetsRootError,
    chain_document_paths,
    chain_id_of,
    discover_chain_dirs,
    list_logo_files,
    logos_dir,
    read_document_bytes
)

from .report import ChainReport, ValidationReport, render_text
from .rules import LogoInspector, RuleContext, check_popular_subset, display_path, validate_document
from .violations import ViolationKind, ViolationRecord, single

LOGGER = logging.getLogger('tokenlist.validator')


@dataclass
class Settings:
    service_name: str
    assets_dir: Path
    address_policy: AddressPolicy | None
    repository: str


def _settings_from_env() -> Settings:
    return Settings(
        service_name=os.getenv('SERVICE_NAME', 'validator'),
        assets_dir=Path(os.getenv('ASSETS_DIR', 'assets')),
        address_policy=parse_policy(os.getenv('ADDRESS_CASE_POLICY')),
        repository=os.getenv('TOKENLIST_REPOSITORY', '').strip()
    )


def validate_chain(chain_dir: Path, settings: Settings) -> ChainReport:
    if settings.address_policy is None:
        raise ValueError('address policy is not configured')

    base = settings.assets_dir.parent
    chain_id = chain_id_of(chain_dir)
    report = ChainReport(chain_id=chain_id)
    LOGGER.info('validating chain_id=%s', chain_id)

    common_path, popular_path = chain_document_paths(chain_dir)
    missing = [path for path in (common_path, popular_path) if not path.is_file()]
    if missing:
        for path in missing:
            LOGGER.error('%s not found in %s', path.name, display_path(chain_dir, base))
            report.records.append(
                single(display_path(chain_dir, base), ViolationKind.MISSING_DOCUMENT, f'{path.name} not found')
            )
        report.invalid_files += len(missing)
        return report

    inspector = LogoInspector(display_base=base)
    ctx = RuleContext(
        policy=settings.address_policy,
        assets_dir=settings.assets_dir,
        repository=settings.repository,
        chain_id=chain_id,
        logos=inspector
    )

    results = []
    for path in (common_path, popular_path):
        shown = display_path(path, base)
        LOGGER.info('validating %s', shown)
        results.append(validate_document(read_document_bytes(path), shown, ctx))
    common, popular = results
    subset_records = check_popular_subset(common, popular)

    report.files_processed += 2
    for result in results:
        report.records.extend(result.records)
        report.warnings.extend(result.warnings)
    report.records.extend(subset_records)

    if common.valid:
        report.valid_files += 1
    else:
        report.invalid_files += 1
    if popular.valid and not subset_records:
        report.valid_files += 1
    else:
        report.invalid_files += 1

    directory = logos_dir(chain_dir)
    if not directory.is_dir():
        LOGGER.warning('logo directory not found: %s', display_path(directory, base))
        report.warnings.append(
            single(display_path(directory, base), ViolationKind.MISSING_LOGO_DIRECTORY, 'Logo directory not found')
        )
    else:
        logo_files = list_logo_files(chain_dir)
        LOGGER.info('checking %s logo files in %s', len(logo_files), display_path(directory, base))
        for path in logo_files:
            report.logo_files_checked += 1
            violation = inspector.inspect(path)
            if violation is not None:
                report.records.append(ViolationRecord(file=display_path(path, base), violations=[violation]))

    report.missing_logo_files = inspector.missing_files
    report.invalid_logo_files = inspector.invalid_files
    return report


def validate_assets(settings: Settings) -> ValidationReport:
    chain_dirs = discover_chain_dirs(settings.assets_dir)
    LOGGER.info('found %s chain directories under %s', len(chain_dirs), settings.assets_dir)

    report = ValidationReport()
    for chain_dir in chain_dirs:
        report = report.merge(validate_chain(chain_dir, settings))
    return report


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Validate per-chain token lists and their logo files')
    parser.add_argument('--assets-dir', help='Root directory holding <chainId>/ folders (env ASSETS_DIR)')
    parser.add_argument(
        '--address-policy',
        choices=ADDRESS_POLICY_CHOICES,
        help='Required address casing policy (env ADDRESS_CASE_POLICY)'
    )
    parser.add_argument('--repository', help='owner/name used by raw-content logo URLs (env TOKENLIST_REPOSITORY)')
    parser.add_argument('--json', action='store_true', help='Print a machine-readable JSON report')
    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _settings_from_env()
    except ValueError as exc:
        parser.error(str(exc))
    if args.assets_dir:
        settings.assets_dir = Path(args.assets_dir)
    if args.address_policy:
        settings.address_policy = AddressPolicy(args.address_policy)
    if args.repository is not None:
        settings.repository = args.repository.strip()
    if settings.address_policy is None:
        parser.error('an address policy is required: pass --address-policy or set ADDRESS_CASE_POLICY')

    LOGGER.info('address policy=%s assets_dir=%s', settings.address_policy.value, settings.assets_dir)
    try:
        report = validate_assets(settings)
    except (AssetsRootError, OSError) as exc:
        LOGGER.error('validation aborted: %s', exc)
        return 1

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(render_text(report))
    return 0 if report.passed else 1


if __name__ == '__main__':
    sys.exit(main())
