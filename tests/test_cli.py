import io
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

from bfi.cli import main as cli_main


class CLITests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_path = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _write(self, content: bytes, name: str = "program.b") -> Path:
        path = self.tmp_path / name
        path.write_bytes(content)
        return path

    def _run(self, argv):
        stdout = io.TextIOWrapper(io.BytesIO(), encoding="latin-1")
        stderr = io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            exit_code = cli_main(argv)
        stdout.flush()
        return exit_code, stdout.buffer.getvalue(), stderr.getvalue()

    def test_runs_script_file(self) -> None:
        source_path = self._write(b"+" * 65 + b". comment")
        exit_code, output, _ = self._run([str(source_path)])
        self.assertEqual(exit_code, 0)
        self.assertEqual(output, b"A")

    def test_execute_inline_code(self) -> None:
        exit_code, output, _ = self._run(["-e", "++++++[>++++++++<-]>."])
        self.assertEqual(exit_code, 0)
        self.assertEqual(output, b"0")

    def test_input_and_output_files(self) -> None:
        source_path = self._write(b",+.,+.")
        input_path = self._write(b"ab", name="input.txt")
        output_path = self.tmp_path / "out.bin"
        exit_code, output, _ = self._run(
            [str(source_path), "--input", str(input_path), "--output", str(output_path)]
        )
        self.assertEqual(exit_code, 0)
        self.assertEqual(output, b"")
        self.assertEqual(output_path.read_bytes(), b"bc")

    def test_missing_file_errors(self) -> None:
        exit_code, _, errors = self._run(["does_not_exist.b"])
        self.assertEqual(exit_code, 1)
        self.assertIn("Source file not found", errors)

    def test_load_failure_exit_code(self) -> None:
        source_path = self._write(b"+" * 100)
        exit_code, output, errors = self._run([str(source_path), "--max-memory", "10"])
        self.assertEqual(exit_code, 1)
        self.assertEqual(output, b"")
        self.assertIn("Failed to load script at byte 11", errors)

    def test_runtime_fault_exit_code(self) -> None:
        exit_code, _, _ = self._run(["-e", "<+"])
        self.assertEqual(exit_code, 2)

    def test_input_exhausted_exit_code(self) -> None:
        empty = self._write(b"", name="empty.txt")
        exit_code, _, _ = self._run(["-e", ",", "--input", str(empty)])
        self.assertEqual(exit_code, 2)

    def test_step_limit_exit_code(self) -> None:
        exit_code, _, errors = self._run(["-e", "+[]", "--max-steps", "50"])
        self.assertEqual(exit_code, 2)
        self.assertIn("step count", errors)

    def test_requires_exactly_one_script(self) -> None:
        with self.assertRaises(SystemExit):
            self._run([])
        source_path = self._write(b"+")
        with self.assertRaises(SystemExit):
            self._run([str(source_path), "-e", "+"])

    def test_rejects_bad_growth_chunk(self) -> None:
        with self.assertRaises(SystemExit):
            self._run(["-e", "+", "--growth-chunk", "0"])


if __name__ == "__main__":
    unittest.main()
