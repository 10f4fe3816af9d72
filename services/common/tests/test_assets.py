import json
import tempfile
import unittest
from pathlib import Path

from services.common.assets import (
    AssetsRootError,
    discover_chain_dirs,
    list_logo_files,
    local_logo_uri,
    parse_logo_uri,
    write_document
)

ADDRESS = '0xAb5801a7D398351b8bE11C439e05C5B3259aeC9B'
LOWER = ADDRESS.lower()


class DiscoverChainDirsTests(unittest.TestCase):
    def test_lists_numeric_directories_in_order(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            for name in ('56', '1', '137', 'scripts', '007', '0'):
                (root / name).mkdir()
            (root / '10').write_text('not a directory', encoding='utf-8')

            chain_dirs = discover_chain_dirs(root)

        self.assertEqual([path.name for path in chain_dirs], ['1', '56', '137'])

    def test_missing_root_raises(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(AssetsRootError):
                discover_chain_dirs(Path(tmp) / 'missing')

    def test_list_logo_files_only_returns_png(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            chain_dir = Path(tmp) / '1'
            (chain_dir / 'logos').mkdir(parents=True)
            (chain_dir / 'logos' / f'{LOWER}.png').write_bytes(b'x')
            (chain_dir / 'logos' / 'README.md').write_text('x', encoding='utf-8')

            files = list_logo_files(chain_dir)

        self.assertEqual([path.name for path in files], [f'{LOWER}.png'])


class ParseLogoUriTests(unittest.TestCase):
    def setUp(self) -> None:
        self.assets_dir = Path('assets')

    def test_relative_shape(self) -> None:
        ref = parse_logo_uri(f'./logos/{LOWER}.png', 1, self.assets_dir)

        self.assertEqual(ref.shape, 'relative')
        self.assertEqual(ref.local_path, Path('assets/1/logos') / f'{LOWER}.png')
        self.assertEqual(ref.address, LOWER)

    def test_absolute_shape_requires_matching_chain(self) -> None:
        ref = parse_logo_uri(f'/assets/1/logos/{LOWER}.png', 1, self.assets_dir)
        self.assertEqual(ref.shape, 'absolute')

        self.assertIsNone(parse_logo_uri(f'/assets/56/logos/{LOWER}.png', 1, self.assets_dir))

    def test_repository_shape(self) -> None:
        uri = f'https://raw.githubusercontent.com/acme/token-list/main/assets/1/logos/{LOWER}.png'

        ref = parse_logo_uri(uri, 1, self.assets_dir, repository='acme/token-list')

        self.assertEqual(ref.shape, 'repository')
        self.assertEqual(ref.local_path, Path('assets/1/logos') / f'{LOWER}.png')

    def test_repository_url_without_configured_repository_is_remote(self) -> None:
        uri = f'https://raw.githubusercontent.com/acme/token-list/main/assets/1/logos/{LOWER}.png'

        ref = parse_logo_uri(uri, 1, self.assets_dir)

        self.assertEqual(ref.shape, 'remote')
        self.assertIsNone(ref.local_path)

    def test_non_address_filename_has_no_address(self) -> None:
        ref = parse_logo_uri('./logos/token.png', 1, self.assets_dir)

        self.assertEqual(ref.shape, 'relative')
        self.assertIsNone(ref.address)

    def test_unknown_shapes(self) -> None:
        for uri in ('logos/a.png', 'ipfs://Qm', './logos/a.svg', ''):
            with self.subTest(uri=uri):
                self.assertIsNone(parse_logo_uri(uri, 1, self.assets_dir))

    def test_local_logo_uri_lowercases(self) -> None:
        self.assertEqual(local_logo_uri(ADDRESS), f'./logos/{LOWER}.png')


class WriteDocumentTests(unittest.TestCase):
    def test_writes_two_space_json_with_newline(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'common.json'
            write_document(path, {'name': 'Liste é', 'tokens': []})
            text = path.read_text(encoding='utf-8')

        self.assertTrue(text.startswith('{\n  "name": "Liste é"'))
        self.assertTrue(text.endswith('}\n'))
        self.assertEqual(json.loads(text)['tokens'], [])


if __name__ == '__main__':
    unittest.main()
