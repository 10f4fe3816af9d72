from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import urllib.error
import urllib.request
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from services.common.addresses import (
    ADDRESS_POLICY_CHOICES,
    AddressPolicy,
    canonical_address,
    is_evm_address,
    logo_filename,
    parse_policy
)
from services.common.assets import COMMON_FILE, load_document, local_logo_uri, logos_dir, write_document

LOGGER = logging.getLogger('tokenlist.sync')

SYNC_REQUIRED_FIELDS = ('chainId', 'address', 'name', 'symbol', 'decimals')

SourceLoader = Callable[[str], Any]


class SyncSourceError(Exception):
    pass


@dataclass
class Settings:
    service_name: str
    assets_dir: Path
    address_policy: AddressPolicy | None
    sources: list[str]
    timeout_seconds: float
    user_agent: str


def _settings_from_env() -> Settings:
    return Settings(
        service_name=os.getenv('SERVICE_NAME', 'token-sync'),
        assets_dir=Path(os.getenv('ASSETS_DIR', 'assets')),
        address_policy=parse_policy(os.getenv('ADDRESS_CASE_POLICY')),
        sources=[item.strip() for item in os.getenv('TOKEN_SYNC_SOURCES', '').split(',') if item.strip()],
        timeout_seconds=float(os.getenv('TOKEN_SYNC_TIMEOUT_SECONDS', '15')),
        user_agent=os.getenv('TOKEN_SYNC_USER_AGENT', 'TokenListSync/1.0')
    )


@dataclass
class SyncStats:
    sources_fetched: int = 0
    tokens_seen: int = 0
    tokens_kept: int = 0
    tokens_dropped: int = 0
    tokens_added: int = 0
    added: list[str] = field(default_factory=list)


def build_loader(settings: Settings) -> SourceLoader:
    def load(source: str) -> Any:
        if not source.startswith(('http://', 'https://')):
            try:
                return load_document(Path(source))
            except (OSError, ValueError) as exc:
                raise SyncSourceError(f'cannot read token list {source}: {exc}') from exc

        req = urllib.request.Request(
            url=source,
            method='GET',
            headers={'Accept': 'application/json', 'User-Agent': settings.user_agent}
        )
        try:
            with urllib.request.urlopen(req, timeout=settings.timeout_seconds) as resp:
                return json.loads(resp.read().decode('utf-8'))
        except (urllib.error.URLError, TimeoutError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise SyncSourceError(f'cannot fetch token list {source}: {exc}') from exc

    return load


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _drop_reason(token: dict[str, Any]) -> str | None:
    missing = [name for name in SYNC_REQUIRED_FIELDS if name not in token]
    if missing:
        return f"missing {', '.join(missing)}"
    if not isinstance(token['address'], str) or not is_evm_address(token['address'].strip()):
        return f"invalid address {token['address']!r}"
    if not _is_int(token['decimals']) or token['decimals'] < 0:
        return 'invalid decimals'
    for name in ('name', 'symbol'):
        if not isinstance(token[name], str) or not token[name].strip():
            return f'invalid {name}'
    return None


def select_chain_tokens(
    payload: Any,
    chain_id: int,
    policy: AddressPolicy,
    chain_dir: Path,
    stats: SyncStats | None = None
) -> list[dict[str, Any]]:
    """Pick the tokens of one chain out of a standard token list payload.

    Addresses are rendered per policy. logoURI points at the local logo file
    when one exists for the address, otherwise the source's URL is kept.
    """
    stats = stats if stats is not None else SyncStats()
    tokens = payload.get('tokens') if isinstance(payload, dict) else None
    if not isinstance(tokens, list):
        raise SyncSourceError('token list has no tokens array')

    directory = logos_dir(chain_dir)
    selected: list[dict[str, Any]] = []
    for token in tokens:
        if not isinstance(token, dict) or token.get('chainId') != chain_id:
            continue
        stats.tokens_seen += 1
        reason = _drop_reason(token)
        if reason is not None:
            LOGGER.warning('dropping %s: %s', token.get('symbol', '?'), reason)
            stats.tokens_dropped += 1
            continue

        address = canonical_address(token['address'].strip(), policy)
        entry: dict[str, Any] = {
            'chainId': chain_id,
            'address': address,
            'name': token['name'].strip(),
            'symbol': token['symbol'].strip(),
            'decimals': token['decimals']
        }
        remote_logo = token.get('logoURI')
        if (directory / logo_filename(address)).is_file():
            entry['logoURI'] = local_logo_uri(address)
        elif isinstance(remote_logo, str) and remote_logo.startswith(('http://', 'https://')):
            entry['logoURI'] = remote_logo
        else:
            LOGGER.warning('dropping %s: no local logo and no remote logoURI', entry['symbol'])
            stats.tokens_dropped += 1
            continue

        selected.append(entry)
        stats.tokens_kept += 1
    return selected


def merge_tokens(
    existing: list[dict[str, Any]],
    incoming: list[dict[str, Any]]
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """Append incoming tokens whose address is not present yet, ignoring case."""
    known = {
        str(token.get('address', '')).lower()
        for token in existing
        if isinstance(token, dict)
    }
    merged = list(existing)
    added: list[dict[str, Any]] = []
    for token in incoming:
        key = token['address'].lower()
        if key in known:
            continue
        known.add(key)
        merged.append(token)
        added.append(token)
    return merged, added


def sync_chain(
    settings: Settings,
    chain_id: int,
    dry_run: bool = False,
    loader: SourceLoader | None = None
) -> SyncStats:
    if settings.address_policy is None:
        raise ValueError('address policy is not configured')
    if not settings.sources:
        raise SyncSourceError('no token list sources configured')

    loader = loader or build_loader(settings)
    chain_dir = settings.assets_dir / str(chain_id)
    common_path = chain_dir / COMMON_FILE
    stats = SyncStats()

    incoming: list[dict[str, Any]] = []
    for source in settings.sources:
        LOGGER.info('fetching %s', source)
        payload = loader(source)
        incoming.extend(select_chain_tokens(payload, chain_id, settings.address_policy, chain_dir, stats))
        stats.sources_fetched += 1

    if common_path.is_file():
        try:
            document = load_document(common_path)
        except ValueError as exc:
            raise SyncSourceError(f'existing {common_path} is not valid UTF-8 JSON: {exc}') from exc
        if not isinstance(document, dict) or not isinstance(document.get('tokens'), list):
            raise SyncSourceError(f'existing {common_path} has no tokens array')
    else:
        document = {'tokens': []}

    merged, added = merge_tokens(document['tokens'], incoming)
    stats.tokens_added = len(added)
    stats.added = [f"{token['symbol']} ({token['address']})" for token in added]

    if not added:
        LOGGER.info('chain_id=%s already up to date', chain_id)
        return stats
    if dry_run:
        LOGGER.info('would add %s tokens to %s (dry run)', len(added), common_path)
        return stats

    document['tokens'] = merged
    chain_dir.mkdir(parents=True, exist_ok=True)
    write_document(common_path, document)
    LOGGER.info('added %s tokens to %s', len(added), common_path)
    return stats


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    parser = argparse.ArgumentParser(description="Merge tokens from external token lists into a chain's common.json")
    parser.add_argument('--chain-id', type=int, required=True)
    parser.add_argument('--source', action='append', help='Token list URL or file; repeatable (env TOKEN_SYNC_SOURCES)')
    parser.add_argument('--assets-dir', help='Root directory holding <chainId>/ folders (env ASSETS_DIR)')
    parser.add_argument('--address-policy', choices=ADDRESS_POLICY_CHOICES)
    parser.add_argument('--dry-run', action='store_true')
    args = parser.parse_args(argv)

    try:
        settings = _settings_from_env()
    except ValueError as exc:
        parser.error(str(exc))
    if args.chain_id <= 0:
        parser.error('--chain-id must be a positive integer')
    if args.assets_dir:
        settings.assets_dir = Path(args.assets_dir)
    if args.source:
        settings.sources = args.source
    if args.address_policy:
        settings.address_policy = AddressPolicy(args.address_policy)
    if settings.address_policy is None:
        parser.error('an address policy is required: pass --address-policy or set ADDRESS_CASE_POLICY')

    try:
        stats = sync_chain(settings, args.chain_id, args.dry_run)
    except (SyncSourceError, OSError) as exc:
        LOGGER.error('sync aborted: %s', exc)
        return 1

    prefix = '[DRY RUN] ' if args.dry_run else ''
    print(f'{prefix}Sources fetched: {stats.sources_fetched}')
    print(f'Tokens for chain {args.chain_id}: {stats.tokens_seen} (kept {stats.tokens_kept}, dropped {stats.tokens_dropped})')
    print(f'New tokens: {stats.tokens_added}')
    for label in stats.added:
        print(f'- {label}')
    return 0


if __name__ == '__main__':
    sys.exit(main())
