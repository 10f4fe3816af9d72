import io
import json
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path

from services.validator.duplicates import find_cross_chain_duplicates, main
from services.validator.violations import ViolationKind

ADDRESS = '0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2'
OTHER = '0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48'


def _write_common(assets_dir: Path, chain_id: int, tokens: list) -> None:
    chain_dir = assets_dir / str(chain_id)
    chain_dir.mkdir(parents=True, exist_ok=True)
    (chain_dir / 'common.json').write_text(json.dumps({'tokens': tokens}, indent=2), encoding='utf-8')


class CrossChainDuplicateTests(unittest.TestCase):
    def test_finds_address_on_multiple_chains(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            assets_dir = Path(tmp)
            _write_common(assets_dir, 1, [{'address': ADDRESS, 'symbol': 'WETH'}, {'address': OTHER, 'symbol': 'USDC'}])
            _write_common(assets_dir, 10, [{'address': ADDRESS.lower(), 'symbol': 'WETH'}])
            _write_common(assets_dir, 56, [{'address': ADDRESS, 'symbol': 'WETH'}])

            duplicates = find_cross_chain_duplicates(assets_dir)

        self.assertEqual(len(duplicates), 1)
        self.assertEqual(duplicates[0].address, ADDRESS)
        self.assertEqual(duplicates[0].chains, (1, 10, 56))
        record = duplicates[0].to_record()
        self.assertEqual(record.kinds(), [ViolationKind.CROSS_CHAIN_DUPLICATE])
        self.assertIn('appears on chains: 1, 10, 56', record.errors[0])

    def test_skips_unparseable_documents(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            assets_dir = Path(tmp)
            _write_common(assets_dir, 1, [{'address': ADDRESS, 'symbol': 'WETH'}])
            (assets_dir / '56').mkdir()
            (assets_dir / '56' / 'common.json').write_text('{', encoding='utf-8')

            self.assertEqual(find_cross_chain_duplicates(assets_dir), [])

    def test_skips_undecodable_documents(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            assets_dir = Path(tmp)
            _write_common(assets_dir, 1, [{'address': ADDRESS, 'symbol': 'WETH'}])
            (assets_dir / '10').mkdir()
            (assets_dir / '10' / 'common.json').write_bytes(b'{"tokens": [\xff\xfe]}')
            _write_common(assets_dir, 56, [{'address': ADDRESS, 'symbol': 'WETH'}])

            duplicates = find_cross_chain_duplicates(assets_dir)

        self.assertEqual([duplicate.chains for duplicate in duplicates], [(1, 56)])

    def test_cli_only_warns(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            assets_dir = Path(tmp)
            _write_common(assets_dir, 1, [{'address': ADDRESS, 'symbol': 'WETH'}])
            _write_common(assets_dir, 56, [{'address': ADDRESS, 'symbol': 'WETH'}])

            with redirect_stdout(io.StringIO()) as stdout:
                code = main(['--assets-dir', str(assets_dir)])

        self.assertEqual(code, 0)
        self.assertIn('[CrossChainDuplicate] WETH', stdout.getvalue())


if __name__ == '__main__':
    unittest.main()
