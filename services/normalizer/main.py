from __future__ import annotations

import argparse
import copy
import logging
import os
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from services.common.addresses import (
    ADDRESS_POLICY_CHOICES,
    AddressPolicy,
    canonical_address,
    is_evm_address,
    parse_policy
)
from services.common.assets import (
    AssetsRootError,
    chain_id_of,
    discover_chain_dirs,
    load_document,
    logos_dir,
    parse_logo_uri,
    write_document
)

LOGGER = logging.getLogger('tokenlist.normalizer')


@dataclass
class Settings:
    service_name: str
    assets_dir: Path
    address_policy: AddressPolicy | None
    repository: str


def _settings_from_env() -> Settings:
    return Settings(
        service_name=os.getenv('SERVICE_NAME', 'normalizer'),
        assets_dir=Path(os.getenv('ASSETS_DIR', 'assets')),
        address_policy=parse_policy(os.getenv('ADDRESS_CASE_POLICY')),
        repository=os.getenv('TOKENLIST_REPOSITORY', '').strip()
    )


@dataclass
class NormalizeStats:
    files_processed: int = 0
    files_modified: int = 0
    tokens_processed: int = 0
    addresses_changed: int = 0
    logo_uris_changed: int = 0
    errors: int = 0


@dataclass
class RenameStats:
    directories_processed: int = 0
    files_scanned: int = 0
    files_renamed: int = 0
    errors: int = 0


def _normalize_logo_uri(logo_uri: str, chain_id: int, repository: str) -> str:
    reference = parse_logo_uri(logo_uri, chain_id, Path('.'), repository)
    if reference is None or reference.local_path is None or reference.address is None:
        return logo_uri
    lowered = reference.address.lower()
    if lowered == reference.address:
        return logo_uri
    return logo_uri.replace(reference.address, lowered)


def normalize_document(
    payload: dict[str, Any],
    policy: AddressPolicy,
    chain_id: int,
    repository: str = ''
) -> tuple[dict[str, Any], NormalizeStats]:
    """Render token addresses per policy and point local logoURIs at lowercase filenames.

    Remote logo URLs other than this repository's are left untouched since
    their paths may be case sensitive.
    """
    stats = NormalizeStats()
    updated = copy.deepcopy(payload)
    tokens = updated.get('tokens')
    if not isinstance(tokens, list):
        return updated, stats

    for token in tokens:
        if not isinstance(token, dict):
            continue
        stats.tokens_processed += 1

        address = token.get('address')
        if isinstance(address, str) and is_evm_address(address):
            canonical = canonical_address(address.strip(), policy)
            if canonical != address:
                token['address'] = canonical
                stats.addresses_changed += 1

        logo_uri = token.get('logoURI')
        if isinstance(logo_uri, str):
            normalized_uri = _normalize_logo_uri(logo_uri, chain_id, repository)
            if normalized_uri != logo_uri:
                token['logoURI'] = normalized_uri
                stats.logo_uris_changed += 1

    return updated, stats


def normalize_assets(settings: Settings, dry_run: bool = False) -> NormalizeStats:
    if settings.address_policy is None:
        raise ValueError('address policy is not configured')

    totals = NormalizeStats()
    for chain_dir in discover_chain_dirs(settings.assets_dir):
        chain_id = chain_id_of(chain_dir)
        for path in sorted(chain_dir.glob('*.json')):
            totals.files_processed += 1
            try:
                payload = load_document(path)
            except ValueError as exc:
                LOGGER.error('cannot parse %s: %s', path, exc)
                totals.errors += 1
                continue
            if not isinstance(payload, dict) or not isinstance(payload.get('tokens'), list):
                LOGGER.warning('no tokens array found in %s, skipping', path)
                continue

            updated, stats = normalize_document(payload, settings.address_policy, chain_id, settings.repository)
            totals.tokens_processed += stats.tokens_processed
            totals.addresses_changed += stats.addresses_changed
            totals.logo_uris_changed += stats.logo_uris_changed
            if not (stats.addresses_changed or stats.logo_uris_changed):
                continue

            totals.files_modified += 1
            if dry_run:
                LOGGER.info('would update (dry run): %s', path)
                continue
            write_document(path, updated)
            LOGGER.info('updated %s', path)

    return totals


def fix_logo_filenames(assets_dir: Path, dry_run: bool = False) -> RenameStats:
    stats = RenameStats()
    for chain_dir in discover_chain_dirs(assets_dir):
        directory = logos_dir(chain_dir)
        if not directory.is_dir():
            continue
        stats.directories_processed += 1

        for path in sorted(directory.iterdir()):
            stats.files_scanned += 1
            if not path.is_file() or path.suffix.lower() != '.png':
                continue
            if path.stem == path.stem.lower():
                continue

            target = path.with_name(path.name.lower())
            if dry_run:
                LOGGER.info('would rename: %s -> %s', path.name, target.name)
                stats.files_renamed += 1
                continue
            if target.exists() and not target.samefile(path):
                LOGGER.error('cannot rename %s: %s already exists', path.name, target.name)
                stats.errors += 1
                continue
            try:
                path.rename(target)
            except OSError as exc:
                LOGGER.error('error renaming %s: %s', path.name, exc)
                stats.errors += 1
                continue
            LOGGER.info('renamed: %s -> %s', path.name, target.name)
            stats.files_renamed += 1

    return stats


def _print_stats(title: str, stats: NormalizeStats | RenameStats, dry_run: bool) -> None:
    print(f"{'[DRY RUN] ' if dry_run else ''}{title}")
    for key, value in asdict(stats).items():
        print(f"{key.replace('_', ' ').capitalize()}: {value}")
    if dry_run:
        print('This was a dry run. Run without --dry-run to apply changes.')


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    parser = argparse.ArgumentParser(description='One-shot fixers for address casing and logo filenames')
    parser.add_argument('--assets-dir', help='Root directory holding <chainId>/ folders (env ASSETS_DIR)')
    parser.add_argument('--dry-run', action='store_true', help='Report changes without writing')
    commands = parser.add_subparsers(dest='command', required=True)

    addresses = commands.add_parser('addresses', help='Rewrite token addresses to the configured policy')
    addresses.add_argument('--address-policy', choices=ADDRESS_POLICY_CHOICES)
    addresses.add_argument('--repository', help='owner/name used by raw-content logo URLs')
    commands.add_parser('logos', help='Rename logo files to lowercase addresses')

    args = parser.parse_args(argv)
    try:
        settings = _settings_from_env()
    except ValueError as exc:
        parser.error(str(exc))
    if args.assets_dir:
        settings.assets_dir = Path(args.assets_dir)

    try:
        if args.command == 'logos':
            _print_stats('Logo filename fixer', fix_logo_filenames(settings.assets_dir, args.dry_run), args.dry_run)
            return 0

        if args.address_policy:
            settings.address_policy = AddressPolicy(args.address_policy)
        if args.repository is not None:
            settings.repository = args.repository.strip()
        if settings.address_policy is None:
            parser.error('an address policy is required: pass --address-policy or set ADDRESS_CASE_POLICY')
        stats = normalize_assets(settings, args.dry_run)
    except (AssetsRootError, OSError) as exc:
        LOGGER.error('normalizer aborted: %s', exc)
        return 1

    _print_stats('Token list address normalizer', stats, args.dry_run)
    return 1 if stats.errors else 0


if __name__ == '__main__':
    sys.exit(main())
