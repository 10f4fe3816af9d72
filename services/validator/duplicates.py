from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path

from services.common.assets import (
    COMMON_FILE,
    AssetsRootError,
    chain_document_paths,
    chain_id_of,
    discover_chain_dirs,
    load_document
)

from .violations import ViolationKind, ViolationRecord, single

LOGGER = logging.getLogger('tokenlist.duplicates')


@dataclass(frozen=True)
class CrossChainDuplicate:
    address: str
    symbol: str
    chains: tuple[int, ...]

    def to_record(self) -> ViolationRecord:
        chains = ', '.join(str(chain_id) for chain_id in self.chains)
        return single(
            COMMON_FILE,
            ViolationKind.CROSS_CHAIN_DUPLICATE,
            f'{self.symbol} ({self.address}) appears on chains: {chains}',
            token=self.address
        )


def find_cross_chain_duplicates(assets_dir: Path) -> list[CrossChainDuplicate]:
    seen: dict[str, tuple[str, str, list[int]]] = {}

    for chain_dir in discover_chain_dirs(assets_dir):
        common_path, _ = chain_document_paths(chain_dir)
        if not common_path.is_file():
            continue
        try:
            payload = load_document(common_path)
        except ValueError as exc:
            LOGGER.warning('skipping unparseable %s: %s', common_path, exc)
            continue

        tokens = payload.get('tokens') if isinstance(payload, dict) else None
        if not isinstance(tokens, list):
            continue

        chain_id = chain_id_of(chain_dir)
        for token in tokens:
            if not isinstance(token, dict) or not isinstance(token.get('address'), str):
                continue
            address = token['address']
            entry = seen.setdefault(address.lower(), (address, str(token.get('symbol', '')), []))
            if chain_id not in entry[2]:
                entry[2].append(chain_id)

    return [
        CrossChainDuplicate(address=address, symbol=symbol, chains=tuple(chains))
        for address, symbol, chains in seen.values()
        if len(chains) > 1
    ]


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    parser = argparse.ArgumentParser(description='Warn about token addresses listed on more than one chain')
    parser.add_argument('--assets-dir', default=os.getenv('ASSETS_DIR', 'assets'))
    args = parser.parse_args(argv)

    try:
        duplicates = find_cross_chain_duplicates(Path(args.assets_dir))
    except (AssetsRootError, OSError) as exc:
        LOGGER.error('duplicate check aborted: %s', exc)
        return 1

    if not duplicates:
        print('No cross-chain duplicate addresses found.')
        return 0

    print('Warning: found tokens with the same address across multiple chains:')
    print('-' * 80)
    for duplicate in duplicates:
        record = duplicate.to_record()
        print(f'[{record.violations[0].kind.value}] {record.errors[0]}')
    print('-' * 80)
    print('This might indicate an error in the token list. Please verify these tokens.')
    return 0


if __name__ == '__main__':
    sys.exit(main())
