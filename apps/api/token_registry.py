from __future__ import annotations

import copy
import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from services.common.assets import AssetsRootError, chain_document_paths, chain_id_of, discover_chain_dirs

from .config import get_settings


class TokenRegistryError(Exception):
    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def resolve_assets_dir() -> Path:
    path = Path(get_settings().assets_dir)
    if path.is_absolute():
        return path
    return _repo_root() / path


@lru_cache(maxsize=256)
def _load_tokens_cached(path_value: str) -> tuple[dict[str, Any], ...]:
    path = Path(path_value)
    if not path.is_file():
        raise TokenRegistryError(404, f'{path.parent.name}/{path.name} not found')
    try:
        payload = json.loads(path.read_bytes().decode('utf-8'))
    except (OSError, ValueError) as exc:
        raise TokenRegistryError(500, f'failed to load {path.parent.name}/{path.name}: {exc}') from exc

    tokens = payload.get('tokens') if isinstance(payload, dict) else None
    if not isinstance(tokens, list):
        return ()
    return tuple(token for token in tokens if isinstance(token, dict))


def load_token_document(path: Path) -> list[dict[str, Any]]:
    # Return a defensive copy so callers cannot mutate shared cache state.
    return copy.deepcopy(list(_load_tokens_cached(str(path))))


load_token_document.cache_clear = _load_tokens_cached.cache_clear  # type: ignore[attr-defined]


def get_chain_ids() -> list[int]:
    try:
        return [chain_id_of(chain_dir) for chain_dir in discover_chain_dirs(resolve_assets_dir())]
    except AssetsRootError:
        return []


def _chain_dir(chain_id: int) -> Path:
    return resolve_assets_dir() / str(chain_id)


def get_tokens(chain_id: int) -> list[dict[str, Any]]:
    common_path, _ = chain_document_paths(_chain_dir(chain_id))
    return load_token_document(common_path)


def get_popular_tokens(chain_id: int) -> list[dict[str, Any]]:
    _, popular_path = chain_document_paths(_chain_dir(chain_id))
    return load_token_document(popular_path)


def get_token_by_address(chain_id: int, address: str) -> dict[str, Any] | None:
    wanted = address.strip().lower()
    for token in get_tokens(chain_id):
        if str(token.get('address', '')).lower() == wanted:
            return token
    return None


def get_all_tokens() -> dict[int, list[dict[str, Any]]]:
    return {chain_id: get_tokens(chain_id) for chain_id in get_chain_ids()}
