from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Path
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from prometheus_client import Counter, make_asgi_app
from pydantic import BaseModel, ConfigDict

from .config import get_settings
from .token_registry import (
    TokenRegistryError,
    get_all_tokens,
    get_chain_ids,
    get_popular_tokens,
    get_token_by_address,
    get_tokens
)

settings = get_settings()
logger = logging.getLogger(__name__)

TOKEN_LOOKUPS_TOTAL = Counter(
    'tokenlist_lookups_total',
    'Token list lookups served by the API',
    ['endpoint', 'chain_id']
)

app = FastAPI(title=settings.app_name, default_response_class=ORJSONResponse)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[x.strip() for x in settings.cors_origins.split(',') if x.strip()],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*']
)
app.mount('/metrics', make_asgi_app())


class TokenEntry(BaseModel):
    model_config = ConfigDict(extra='allow')

    chainId: int
    address: str
    name: str
    symbol: str
    decimals: int
    logoURI: str


def _raise_http(exc: TokenRegistryError) -> None:
    if exc.status_code >= 500:
        logger.error('token registry failure: %s', exc.detail)
    raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc


@app.get('/health')
async def health() -> dict[str, str]:
    return {'status': 'ok'}


@app.get('/chains')
async def chains() -> dict:
    TOKEN_LOOKUPS_TOTAL.labels(endpoint='chains', chain_id='all').inc()
    return {'chains': get_chain_ids()}


@app.get('/tokens')
async def all_tokens() -> dict:
    TOKEN_LOOKUPS_TOTAL.labels(endpoint='all_tokens', chain_id='all').inc()
    try:
        payload = get_all_tokens()
    except TokenRegistryError as exc:
        _raise_http(exc)
    return {'chains': {str(chain_id): tokens for chain_id, tokens in payload.items()}}


@app.get('/tokens/{chain_id}')
async def chain_tokens(chain_id: int = Path(..., gt=0)) -> dict:
    TOKEN_LOOKUPS_TOTAL.labels(endpoint='tokens', chain_id=str(chain_id)).inc()
    try:
        tokens = get_tokens(chain_id)
    except TokenRegistryError as exc:
        _raise_http(exc)
    return {'chain_id': chain_id, 'tokens': tokens}


@app.get('/tokens/{chain_id}/popular')
async def popular_tokens(chain_id: int = Path(..., gt=0)) -> dict:
    TOKEN_LOOKUPS_TOTAL.labels(endpoint='popular', chain_id=str(chain_id)).inc()
    try:
        tokens = get_popular_tokens(chain_id)
    except TokenRegistryError as exc:
        _raise_http(exc)
    return {'chain_id': chain_id, 'tokens': tokens}


@app.get('/tokens/{chain_id}/{address}', response_model=TokenEntry)
async def token_by_address(address: str, chain_id: int = Path(..., gt=0)) -> dict:
    TOKEN_LOOKUPS_TOTAL.labels(endpoint='token', chain_id=str(chain_id)).inc()
    try:
        token = get_token_by_address(chain_id, address)
    except TokenRegistryError as exc:
        _raise_http(exc)
    if token is None:
        raise HTTPException(status_code=404, detail=f'token {address} not found on chain_id={chain_id}')
    return token


@app.get('/')
async def root() -> dict:
    return {'service': settings.app_name, 'status': 'ok'}
