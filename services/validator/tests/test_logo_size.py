import io
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path

from services.common.images import PNG_SIGNATURE
from services.validator.logo_size import audit_logo_sizes, main
from services.validator.violations import ViolationKind


def _write_logo(assets_dir: Path, chain_id: int, name: str, size: int) -> None:
    directory = assets_dir / str(chain_id) / 'logos'
    directory.mkdir(parents=True, exist_ok=True)
    (directory / name).write_bytes(PNG_SIGNATURE + b'\x00' * (size - len(PNG_SIGNATURE)))


class LogoSizeTests(unittest.TestCase):
    def test_reports_oversized_files_per_chain(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            assets_dir = Path(tmp) / 'assets'
            _write_logo(assets_dir, 1, 'small.png', 1024)
            _write_logo(assets_dir, 1, 'large.png', 3 * 1024)
            _write_logo(assets_dir, 56, 'ok.png', 512)

            report = audit_logo_sizes(assets_dir, max_size_kb=2)

        self.assertEqual(report.directories_processed, 2)
        self.assertEqual(report.logo_files, 3)
        self.assertEqual(report.oversized_files, 1)
        record = report.oversized[1][0]
        self.assertEqual(record.kinds(), [ViolationKind.OVERSIZED_LOGO_FILE])
        self.assertEqual(record.errors, ['large.png: 3.0KB (limit: 2KB)'])
        self.assertFalse(report.passed)

    def test_file_at_limit_passes(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            assets_dir = Path(tmp) / 'assets'
            _write_logo(assets_dir, 1, 'edge.png', 2 * 1024)

            report = audit_logo_sizes(assets_dir, max_size_kb=2)

        self.assertTrue(report.passed)

    def test_cli_exit_codes(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            assets_dir = Path(tmp) / 'assets'
            _write_logo(assets_dir, 1, 'large.png', 3 * 1024)

            with redirect_stdout(io.StringIO()) as stdout:
                failing = main(['--assets-dir', str(assets_dir), '--max-size-kb', '2'])
                passing = main(['--assets-dir', str(assets_dir), '--max-size-kb', '100'])

        self.assertEqual(failing, 1)
        self.assertEqual(passing, 0)
        self.assertIn('Chain ID: 1', stdout.getvalue())


if __name__ == '__main__':
    unittest.main()
