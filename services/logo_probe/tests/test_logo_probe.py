import json
import socket
import tempfile
import unittest
import urllib.error
from pathlib import Path
from unittest.mock import patch

from services.logo_probe.main import Settings, collect_remote_logo_urls, probe_url, probe_urls
from services.validator.violations import ViolationKind


def _settings(**overrides) -> Settings:
    values = {
        'service_name': 'logo-probe',
        'assets_dir': Path('assets'),
        'concurrency': 2,
        'batch_delay_seconds': 0.5,
        'timeout_seconds': 5,
        'max_retries': 3,
        'backoff_seconds': 1,
        'user_agent': 'test'
    }
    values.update(overrides)
    return Settings(**values)


class ScriptedFetch:
    def __init__(self, outcomes: list) -> None:
        self.outcomes = list(outcomes)
        self.calls = 0

    def __call__(self, url: str) -> int:
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@patch('services.logo_probe.main.time.sleep')
class ProbeUrlTests(unittest.TestCase):
    def test_ok_on_first_attempt(self, sleep) -> None:
        result = probe_url('https://example.com/a.png', _settings(), ScriptedFetch([200]))

        self.assertTrue(result.ok)
        self.assertEqual(result.attempts, 1)
        sleep.assert_not_called()

    def test_retries_server_errors_with_linear_backoff(self, sleep) -> None:
        fetch = ScriptedFetch([503, 429, 200])

        result = probe_url('https://example.com/a.png', _settings(), fetch)

        self.assertTrue(result.ok)
        self.assertEqual(result.attempts, 3)
        self.assertEqual([call.args[0] for call in sleep.call_args_list], [1, 2])

    def test_gives_up_after_retry_budget(self, sleep) -> None:
        fetch = ScriptedFetch([500, 500, 500, 500])

        result = probe_url('https://example.com/a.png', _settings(), fetch)

        self.assertFalse(result.ok)
        self.assertEqual(fetch.calls, 4)
        self.assertEqual(result.status_code, 500)
        self.assertEqual(result.message, 'HTTP 500')
        self.assertEqual(sleep.call_count, 3)

    def test_client_errors_are_not_retried(self, sleep) -> None:
        fetch = ScriptedFetch([404])

        result = probe_url('https://example.com/a.png', _settings(), fetch)

        self.assertFalse(result.ok)
        self.assertEqual(fetch.calls, 1)
        self.assertEqual(result.message, 'HTTP 404')

    def test_timeouts_are_retried(self, sleep) -> None:
        fetch = ScriptedFetch([socket.timeout(), urllib.error.URLError(TimeoutError()), 200])

        result = probe_url('https://example.com/a.png', _settings(), fetch)

        self.assertTrue(result.ok)
        self.assertEqual(fetch.calls, 3)

    def test_connection_errors_fail_immediately(self, sleep) -> None:
        fetch = ScriptedFetch([urllib.error.URLError('Name or service not known')])

        result = probe_url('https://missing.invalid/a.png', _settings(), fetch)

        self.assertFalse(result.ok)
        self.assertEqual(fetch.calls, 1)
        self.assertIn('Name or service not known', result.message)

    def test_invalid_url(self, sleep) -> None:
        result = probe_url('https://', _settings(), ScriptedFetch([ValueError('no host')]))

        self.assertFalse(result.ok)
        self.assertTrue(result.message.startswith('Invalid URL'))


@patch('services.logo_probe.main.time.sleep')
class ProbeUrlsTests(unittest.TestCase):
    def test_batches_and_collects_warnings(self, sleep) -> None:
        statuses = {
            'https://example.com/a.png': 200,
            'https://example.com/b.png': 404,
            'https://example.com/c.png': 200
        }

        report = probe_urls(list(statuses), _settings(), fetch=lambda url: statuses[url])

        self.assertEqual(report.total_urls, 3)
        self.assertEqual(report.working, 2)
        self.assertEqual([result.url for result in report.broken], ['https://example.com/b.png'])
        warnings = report.warnings()
        self.assertEqual(warnings[0].kinds(), [ViolationKind.UNREACHABLE_URL])
        # two batches of two, one pause between them
        sleep.assert_called_once_with(0.5)


class CollectRemoteLogoUrlsTests(unittest.TestCase):
    def test_collects_unique_remote_urls(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            assets_dir = Path(tmp)
            chain_dir = assets_dir / '1'
            chain_dir.mkdir()
            common = {
                'tokens': [
                    {'logoURI': 'https://example.com/a.png'},
                    {'logoURI': './logos/0xab.png'},
                    {'logoURI': 'http://example.com/b.png'}
                ]
            }
            popular = {'tokens': [{'logoURI': 'https://example.com/a.png'}]}
            (chain_dir / 'common.json').write_text(json.dumps(common), encoding='utf-8')
            (chain_dir / 'popular.json').write_text(json.dumps(popular), encoding='utf-8')

            urls = collect_remote_logo_urls(assets_dir)

        self.assertEqual(urls, ['https://example.com/a.png', 'http://example.com/b.png'])

    def test_skips_undecodable_documents(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            assets_dir = Path(tmp)
            for chain_id in ('1', '56'):
                (assets_dir / chain_id).mkdir()
            (assets_dir / '1' / 'common.json').write_bytes(b'{"tokens": [\xff\xfe]}')
            (assets_dir / '56' / 'common.json').write_text(
                json.dumps({'tokens': [{'logoURI': 'https://example.com/c.png'}]}),
                encoding='utf-8'
            )

            urls = collect_remote_logo_urls(assets_dir)

        self.assertEqual(urls, ['https://example.com/c.png'])


if __name__ == '__main__':
    unittest.main()
