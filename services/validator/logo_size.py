from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from services.common.assets import AssetsRootError, chain_id_of, discover_chain_dirs, list_logo_files, logos_dir
from services.common.images import file_size_kb

from .rules import display_path
from .violations import ViolationKind, ViolationRecord, single

LOGGER = logging.getLogger('tokenlist.logo_size')

DEFAULT_MAX_SIZE_KB = 100.0


@dataclass
class LogoSizeReport:
    max_size_kb: float
    directories_processed: int = 0
    logo_files: int = 0
    oversized: dict[int, list[ViolationRecord]] = field(default_factory=dict)

    @property
    def oversized_files(self) -> int:
        return sum(len(records) for records in self.oversized.values())

    @property
    def passed(self) -> bool:
        return self.oversized_files == 0


def audit_logo_sizes(assets_dir: Path, max_size_kb: float = DEFAULT_MAX_SIZE_KB) -> LogoSizeReport:
    report = LogoSizeReport(max_size_kb=max_size_kb)
    base = assets_dir.parent

    for chain_dir in discover_chain_dirs(assets_dir):
        if not logos_dir(chain_dir).is_dir():
            continue
        report.directories_processed += 1
        chain_id = chain_id_of(chain_dir)

        for path in list_logo_files(chain_dir):
            report.logo_files += 1
            size_kb = file_size_kb(path)
            if size_kb <= max_size_kb:
                continue
            LOGGER.warning('oversized logo %s (%sKB)', path.name, size_kb)
            report.oversized.setdefault(chain_id, []).append(
                single(
                    display_path(path, base),
                    ViolationKind.OVERSIZED_LOGO_FILE,
                    f'{path.name}: {size_kb}KB (limit: {max_size_kb:g}KB)'
                )
            )

    return report


def render_text(report: LogoSizeReport) -> str:
    lines = [
        f'Maximum allowed size: {report.max_size_kb:g}KB',
        f'Directories processed: {report.directories_processed}',
        f'Total logo files: {report.logo_files}',
        f'Oversized logo files: {report.oversized_files}'
    ]
    for chain_id, records in sorted(report.oversized.items()):
        lines.append('')
        lines.append(f'Chain ID: {chain_id}')
        for record in records:
            for message in record.errors:
                lines.append(f'- {message}')
    if report.passed:
        lines.append('')
        lines.append('All logo files are within the size limit.')
    return '\n'.join(lines)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    parser = argparse.ArgumentParser(description='Report logo files above the size limit')
    parser.add_argument('--assets-dir', default=os.getenv('ASSETS_DIR', 'assets'))
    parser.add_argument(
        '--max-size-kb',
        type=float,
        default=float(os.getenv('LOGO_MAX_SIZE_KB', str(DEFAULT_MAX_SIZE_KB)))
    )
    args = parser.parse_args(argv)

    try:
        report = audit_logo_sizes(Path(args.assets_dir), args.max_size_kb)
    except (AssetsRootError, OSError) as exc:
        LOGGER.error('logo size audit aborted: %s', exc)
        return 1

    print(render_text(report))
    return 0 if report.passed else 1


if __name__ == '__main__':
    sys.exit(main())
