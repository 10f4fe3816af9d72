from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

COMMON_FILE = 'common.json'
POPULAR_FILE = 'popular.json'
LOGOS_DIR = 'logos'
DOCUMENT_NAMES = (COMMON_FILE, POPULAR_FILE)

_ADDRESS_STEM = re.compile(r'0x[a-fA-F0-9]{40}')
_RELATIVE_LOGO = re.compile(r'\./logos/([^/]+\.png)')
_ABSOLUTE_LOGO = re.compile(r'/assets/(\d+)/logos/([^/]+\.png)')


class AssetsRootError(Exception):
    pass


@dataclass(frozen=True)
class LogoReference:
    shape: str
    local_path: Path | None
    address: str | None


def discover_chain_dirs(assets_dir: Path) -> list[Path]:
    if not assets_dir.is_dir():
        raise AssetsRootError(f'assets directory not found: {assets_dir}')
    try:
        entries = list(assets_dir.iterdir())
    except OSError as exc:
        raise AssetsRootError(f'cannot read assets directory {assets_dir}: {exc}') from exc

    chain_dirs = [
        entry
        for entry in entries
        if entry.is_dir() and entry.name.isdigit() and entry.name == str(int(entry.name)) and int(entry.name) > 0
    ]
    return sorted(chain_dirs, key=lambda entry: int(entry.name))


def chain_id_of(chain_dir: Path) -> int:
    return int(chain_dir.name)


def chain_document_paths(chain_dir: Path) -> tuple[Path, Path]:
    return chain_dir / COMMON_FILE, chain_dir / POPULAR_FILE


def logos_dir(chain_dir: Path) -> Path:
    return chain_dir / LOGOS_DIR


def list_logo_files(chain_dir: Path) -> list[Path]:
    directory = logos_dir(chain_dir)
    if not directory.is_dir():
        return []
    return sorted(path for path in directory.glob('*.png') if path.is_file())


def read_document_bytes(path: Path) -> bytes:
    return path.read_bytes()


def load_document(path: Path) -> Any:
    # Malformed content raises ValueError (UnicodeDecodeError or JSONDecodeError).
    return json.loads(read_document_bytes(path).decode('utf-8'))


def write_document(path: Path, payload: Any) -> None:
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + '\n', encoding='utf-8')


def _address_from_filename(filename: str) -> str | None:
    stem = filename[:-len('.png')] if filename.endswith('.png') else filename
    if _ADDRESS_STEM.fullmatch(stem):
        return stem
    return None


def _repository_patterns(repository: str) -> list[re.Pattern[str]]:
    repo = re.escape(repository.strip().strip('/'))
    if not repo:
        return []
    return [
        re.compile(rf'https://raw\.githubusercontent\.com/{repo}/(?:.+/)?assets/(\d+)/logos/([^/]+\.png)'),
        re.compile(rf'https://github\.com/{repo}/(?:raw|blob)/(?:.+/)?assets/(\d+)/logos/([^/]+\.png)(?:\?raw=true)?')
    ]


def parse_logo_uri(logo_uri: str, chain_id: int, assets_dir: Path, repository: str = '') -> LogoReference | None:
    """Classify a logoURI into one of the accepted shapes.

    Local shapes resolve to ``assets/<chainId>/logos/<file>``; plain remote
    URLs carry no local path. Returns ``None`` when no shape matches.
    """
    chain_logos = assets_dir / str(chain_id) / LOGOS_DIR

    match = _RELATIVE_LOGO.fullmatch(logo_uri)
    if match:
        filename = match.group(1)
        return LogoReference('relative', chain_logos / filename, _address_from_filename(filename))

    match = _ABSOLUTE_LOGO.fullmatch(logo_uri)
    if match:
        if int(match.group(1)) != chain_id:
            return None
        filename = match.group(2)
        return LogoReference('absolute', chain_logos / filename, _address_from_filename(filename))

    for pattern in _repository_patterns(repository):
        match = pattern.fullmatch(logo_uri)
        if match and int(match.group(1)) == chain_id:
            filename = match.group(2)
            return LogoReference('repository', chain_logos / filename, _address_from_filename(filename))

    if logo_uri.startswith(('http://', 'https://')):
        return LogoReference('remote', None, None)
    return None


def local_logo_uri(address: str) -> str:
    return f'./{LOGOS_DIR}/{address.strip().lower()}.png'
