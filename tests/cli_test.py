import contextlib
import io
import json
import os
import tempfile
import unittest

from cli import CLIMain, main
from cli.commands import CLICommands
from tests.bank_test_common import build_bank, read_file, read_layout, write_file


class TestCLI(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = self._tmp.name
        self.config_path = os.path.join(self.tmp, "config.pickle")
        self.raw = build_bank([(100, b"aaaa"), (200, b"bb"), (300, b"c")],
                              trailing=b"tail")
        self.bank = write_file(self.tmp, "test.bnk", self.raw)

    def tearDown(self):
        self._tmp.cleanup()

    def run_main(self, *argv: str) -> tuple[int, str]:
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = main(list(argv) + ["--config", self.config_path])
        return code, out.getvalue()

    def test_list(self):
        code, output = self.run_main("list", self.bank)
        self.assertEqual(code, 0)
        self.assertIn("200", output)
        self.assertEqual(len(output.strip().splitlines()), 4)

    def test_export_by_id(self):
        destination = os.path.join(self.tmp, "200.wem")
        code, _ = self.run_main("export", self.bank, "--id", "200", "-o", destination)
        self.assertEqual(code, 0)
        self.assertEqual(read_file(destination), b"bb")

    def test_export_unknown_id_fails(self):
        destination = os.path.join(self.tmp, "404.wem")
        code, _ = self.run_main("export", self.bank, "--id", "404", "-o", destination)
        self.assertEqual(code, 1)
        self.assertFalse(os.path.exists(destination))

    def test_export_all_then_patch_from_folder(self):
        dump = os.path.join(self.tmp, "dump")
        code, _ = self.run_main("export", self.bank, "--all", "-o", dump)
        self.assertEqual(code, 0)
        self.assertEqual(sorted(os.listdir(dump)),
                         ["1_100.wem", "2_200.wem", "3_300.wem"])

        write_file(dump, "2_200.wem", b"replaced")
        out = os.path.join(self.tmp, "out.bnk")
        code, _ = self.run_main("patch", self.bank, "--folder", dump, "-o", out)
        self.assertEqual(code, 0)
        _, records, _, data, trailing = read_layout(read_file(out))
        self.assertEqual(records, [(100, 0, 4), (200, 4, 8), (300, 12, 1)])
        self.assertEqual(data, b"aaaareplacedc")
        self.assertEqual(trailing, b"tail")

    def test_patch_by_position_and_id(self):
        first = write_file(self.tmp, "first.wem", b"1")
        out = os.path.join(self.tmp, "out.bnk")
        code, _ = self.run_main("patch", self.bank, "--replace", f"0={first}",
                                "-o", out)
        self.assertEqual(code, 0)
        self.assertEqual(read_layout(read_file(out))[3], b"1bbc")

        code, _ = self.run_main("patch", self.bank, "--by-id",
                                "--replace", f"300={first}", "-o", out)
        self.assertEqual(code, 0)
        self.assertEqual(read_layout(read_file(out))[3], b"aaaabb1")

    def test_no_mode(self):
        self.assertEqual(main([]), 1)

    def test_inline_workflow(self):
        out = os.path.join(self.tmp, "out.bnk")
        workflow = {
            "description": "swap second entry",
            "context": {"dir": self.tmp},
            "steps": [
                {"command": "open", "args": {"path": "{dir}/test.bnk"}},
                {"command": "replace", "args": {"id": 200, "file": "{dir}/new.wem"}},
                {"command": "status"},
                {"command": "write", "args": "{dir}/out.bnk"},
            ],
        }
        write_file(self.tmp, "new.wem", b"NEW")
        code, _ = self.run_main("workflow", "--inline", json.dumps(workflow))
        self.assertEqual(code, 0)
        self.assertEqual(read_layout(read_file(out))[3], b"aaaaNEWc")

    def test_workflow_file_stops_on_error(self):
        workflow = {
            "steps": [
                {"command": "open", "args": self.bank},
                {"command": "no_such_command"},
                {"command": "write", "args": {"output": "{out}"}},
            ],
        }
        path = os.path.join(self.tmp, "workflow.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(workflow, f)
        out = os.path.join(self.tmp, "out.bnk")
        code, _ = self.run_main("workflow", path, "--set", f"out={out}")
        self.assertEqual(code, 1)
        self.assertFalse(os.path.exists(out))

    def test_workflow_continue_on_error(self):
        out = os.path.join(self.tmp, "out.bnk")
        steps = [
            {"command": "open", "args": self.bank},
            {"command": "clear", "args": {"id": 404}, "on_error": "continue"},
            {"command": "write", "args": out},
            {"command": "close"},
        ]
        cli = CLIMain()
        self.assertTrue(cli.run_steps(steps))
        self.assertEqual(read_file(out), self.raw)

    def test_dry_run_touches_nothing(self):
        out = os.path.join(self.tmp, "out.bnk")
        workflow = {"steps": [{"command": "open", "args": self.bank},
                              {"command": "write", "args": out}]}
        self.assertTrue(CLIMain().execute_workflow(workflow, dry_run=True))
        self.assertFalse(os.path.exists(out))

    def test_commands_require_open_bank(self):
        commands = CLICommands()
        self.assertFalse(commands.execute_command("list", {}))
        self.assertFalse(commands.execute_command("write", "out.bnk"))
        self.assertIn("replace_folder", commands.get_available_commands())

    def test_list_shows_original_and_output_layout(self):
        commands = CLICommands()
        new = write_file(self.tmp, "new.wem", b"123456")
        self.assertTrue(commands.execute_command("open", self.bank))
        self.assertTrue(commands.execute_command("replace", {"index": 0, "file": new}))
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            self.assertTrue(commands.execute_command("list", {}))
        commands.cleanup()

        rows = [line.split() for line in out.getvalue().strip().splitlines()[1:]]
        # position, id, offset, length, new offset, new length
        self.assertEqual(rows[0][:6], ["0", "100", "0", "4", "0", "6"])
        self.assertTrue(rows[0][6].endswith("new.wem"))
        self.assertEqual(rows[1], ["1", "200", "4", "2", "6", "2"])
        self.assertEqual(rows[2], ["2", "300", "6", "1", "8", "1"])

    def test_replace_variables(self):
        cli = CLIMain()
        value = cli.replace_variables(
            {"a": "{x}/b", "c": ["{x}", 3]}, {"x": "root"}
        )
        self.assertEqual(value, {"a": "root/b", "c": ["root", 3]})


if __name__ == "__main__":
    unittest.main()
