from __future__ import annotations

import argparse
import http.client
import logging
import os
import sys
import time
import urllib.error
import urllib.request
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from services.common.assets import AssetsRootError, chain_document_paths, discover_chain_dirs, load_document
from services.validator.violations import ViolationKind, ViolationRecord, single

LOGGER = logging.getLogger('tokenlist.logo_probe')

Fetcher = Callable[[str], int]


@dataclass
class Settings:
    service_name: str
    assets_dir: Path
    concurrency: int
    batch_delay_seconds: float
    timeout_seconds: float
    max_retries: int
    backoff_seconds: float
    user_agent: str


def _settings_from_env() -> Settings:
    return Settings(
        service_name=os.getenv('SERVICE_NAME', 'logo-probe'),
        assets_dir=Path(os.getenv('ASSETS_DIR', 'assets')),
        concurrency=max(1, int(os.getenv('LOGO_PROBE_CONCURRENCY', '10'))),
        batch_delay_seconds=float(os.getenv('LOGO_PROBE_BATCH_DELAY_SECONDS', '0.5')),
        timeout_seconds=float(os.getenv('LOGO_PROBE_TIMEOUT_SECONDS', '5')),
        max_retries=max(0, int(os.getenv('LOGO_PROBE_MAX_RETRIES', '3'))),
        backoff_seconds=float(os.getenv('LOGO_PROBE_BACKOFF_SECONDS', '1')),
        user_agent=os.getenv('LOGO_PROBE_USER_AGENT', 'LogoURLValidator/1.0')
    )


@dataclass(frozen=True)
class ProbeResult:
    url: str
    ok: bool
    status_code: int | None
    attempts: int
    message: str | None = None


@dataclass
class ProbeReport:
    total_urls: int = 0
    results: list[ProbeResult] = field(default_factory=list)

    @property
    def working(self) -> int:
        return sum(1 for result in self.results if result.ok)

    @property
    def broken(self) -> list[ProbeResult]:
        return [result for result in self.results if not result.ok]

    def warnings(self) -> list[ViolationRecord]:
        return [
            single(result.url, ViolationKind.UNREACHABLE_URL, result.message or 'unreachable')
            for result in self.broken
        ]


class _LimitedRedirectHandler(urllib.request.HTTPRedirectHandler):
    def __init__(self, max_redirections: int) -> None:
        super().__init__()
        self.max_redirections = max_redirections


def build_fetcher(settings: Settings) -> Fetcher:
    opener = urllib.request.build_opener(_LimitedRedirectHandler(max(1, settings.max_retries)))

    def fetch(url: str) -> int:
        req = urllib.request.Request(url=url, method='GET', headers={'User-Agent': settings.user_agent})
        try:
            with opener.open(req, timeout=settings.timeout_seconds) as resp:
                return int(resp.status)
        except urllib.error.HTTPError as exc:
            exc.close()
            return int(exc.code)

    return fetch


def _is_timeout(exc: urllib.error.URLError) -> bool:
    return isinstance(exc.reason, TimeoutError)


def probe_url(url: str, settings: Settings, fetch: Fetcher) -> ProbeResult:
    attempts = 0
    status: int | None = None
    message: str | None = None

    while attempts <= settings.max_retries:
        attempts += 1
        try:
            status = fetch(url)
        except TimeoutError:
            message = 'Request timed out'
        except urllib.error.URLError as exc:
            if not _is_timeout(exc):
                return ProbeResult(url, False, None, attempts, str(exc.reason))
            message = 'Request timed out'
        except (OSError, http.client.HTTPException) as exc:
            return ProbeResult(url, False, None, attempts, str(exc) or exc.__class__.__name__)
        except ValueError as exc:
            return ProbeResult(url, False, None, attempts, f'Invalid URL: {exc}')
        else:
            if status == 200:
                return ProbeResult(url, True, status, attempts)
            message = f'HTTP {status}'
            if status != 429 and status < 500:
                return ProbeResult(url, False, status, attempts, message)

        if attempts <= settings.max_retries:
            delay = settings.backoff_seconds * attempts
            LOGGER.debug('retrying %s in %.1fs (%s)', url, delay, message)
            time.sleep(delay)

    return ProbeResult(url, False, status, attempts, message)


def collect_remote_logo_urls(assets_dir: Path) -> list[str]:
    urls: dict[str, None] = {}
    for chain_dir in discover_chain_dirs(assets_dir):
        for path in chain_document_paths(chain_dir):
            if not path.is_file():
                continue
            try:
                payload = load_document(path)
            except ValueError as exc:
                LOGGER.warning('skipping unparseable %s: %s', path, exc)
                continue
            tokens = payload.get('tokens') if isinstance(payload, dict) else None
            if not isinstance(tokens, list):
                continue
            for token in tokens:
                logo_uri = token.get('logoURI') if isinstance(token, dict) else None
                if isinstance(logo_uri, str) and logo_uri.startswith(('http://', 'https://')):
                    urls.setdefault(logo_uri, None)
    return list(urls)


def probe_urls(urls: list[str], settings: Settings, fetch: Fetcher | None = None) -> ProbeReport:
    fetch = fetch or build_fetcher(settings)
    report = ProbeReport(total_urls=len(urls))
    batch_size = settings.concurrency

    with ThreadPoolExecutor(max_workers=batch_size) as executor:
        for start in range(0, len(urls), batch_size):
            batch = urls[start:start + batch_size]
            report.results.extend(executor.map(lambda url: probe_url(url, settings, fetch), batch))
            LOGGER.info('progress %s/%s', len(report.results), report.total_urls)
            if start + batch_size < len(urls):
                time.sleep(settings.batch_delay_seconds)

    return report


def render_text(report: ProbeReport) -> str:
    lines = [
        'Results Summary:',
        f'Total URLs checked: {len(report.results)}',
        f'Working URLs: {report.working}',
        f'Broken URLs: {len(report.broken)}'
    ]
    for record in report.warnings():
        lines.append(f'{record.file}')
        for message in record.errors:
            lines.append(f'  - [{ViolationKind.UNREACHABLE_URL.value}] {message}')
    return '\n'.join(lines)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=os.getenv('LOG_LEVEL', 'INFO').upper(),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    parser = argparse.ArgumentParser(description='Check that remote logoURI values are reachable')
    parser.add_argument('--assets-dir', help='Root directory holding <chainId>/ folders (env ASSETS_DIR)')
    parser.add_argument('--strict', action='store_true', help='Exit 1 when any URL is unreachable')
    args = parser.parse_args(argv)

    settings = _settings_from_env()
    if args.assets_dir:
        settings.assets_dir = Path(args.assets_dir)

    try:
        urls = collect_remote_logo_urls(settings.assets_dir)
    except (AssetsRootError, OSError) as exc:
        LOGGER.error('logo probe aborted: %s', exc)
        return 1

    LOGGER.info(
        'probing %s unique logo urls concurrency=%s retries=%s',
        len(urls),
        settings.concurrency,
        settings.max_retries
    )
    report = probe_urls(urls, settings)
    print(render_text(report))

    if report.broken and args.strict:
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
