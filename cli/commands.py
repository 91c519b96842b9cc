"""
CLI Command Module - Implements the execution logic for each CLI command
Provides commands such as open, list, export, replace, clear, write, etc.
"""

from typing import Any

import config as cfg

from bank_editor import BankEditor
from const import ENDIAN_NAMES
from errors import BankError
from log import logger


class CLICommands:
    """CLI Command Executor, holds at most one open bank at a time"""

    def __init__(self, app_config: cfg.Config | None = None, endian: str = ""):
        self.app_config = app_config if app_config is not None else cfg.Config()
        self.endian = endian or self.app_config.endian
        self.editor: BankEditor | None = None

        # Command mapping
        self.commands = {
            "open": self.open,
            "list": self.list_entries,
            "export": self.export,
            "export_all": self.export_all,
            "replace": self.replace,
            "replace_folder": self.replace_folder,
            "clear": self.clear,
            "status": self.status,
            "write": self.write,
            "close": self.close,
            "help": self.help,
        }

    def execute_command(self, command: str, args: Any) -> bool:
        """Execute command"""
        if command not in self.commands:
            logger.error(f"Unknown command: {command}")
            return False

        logger.info(f"Executing command: {command}")
        logger.debug(f"Command args: {args}")
        try:
            return self.commands[command](args)
        except (BankError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Command {command} failed: {e}")
            return False

    def get_available_commands(self) -> list[str]:
        return list(self.commands.keys())

    def cleanup(self):
        if self.editor is not None:
            self.editor.close()
            self.editor = None

    def _get_editor(self) -> BankEditor:
        if self.editor is None:
            raise ValueError("No bank is open")
        return self.editor

    def _resolve_endian(self, args: dict[str, Any]) -> str:
        name = args.get("endian", "")
        if not name:
            return self.endian
        if name not in ENDIAN_NAMES:
            raise ValueError(f"Unknown endianness '{name}', expected one of "
                             f"{list(ENDIAN_NAMES.keys())}")
        return ENDIAN_NAMES[name]

    @staticmethod
    def _as_dict(args: Any, key: str) -> dict[str, Any]:
        """Simple format passes a single value, which fills `key`"""
        if isinstance(args, dict):
            return args
        if args is None or args == "":
            return {}
        return {key: args}

    @staticmethod
    def _selector(args: dict[str, Any]) -> tuple[int, bool]:
        if "id" in args:
            return int(args["id"]), True
        if "index" in args:
            return int(args["index"]), False
        raise ValueError("Either 'id' or 'index' must be given")

    def open(self, args: Any) -> bool:
        args = self._as_dict(args, "path")
        path = args.get("path", "")
        if not path:
            logger.error("Bank path not specified")
            return False
        self.cleanup()
        self.editor = BankEditor.open(path, self._resolve_endian(args))
        self.app_config.add_recent_file(path)
        return True

    def list_entries(self, args: Any) -> bool:
        editor = self._get_editor()
        pending = editor.list_pending_replacements()
        output_offsets = editor.bank.get_output_offsets()
        print(f"{'#':>5}  {'id':>10}  {'offset':>10}  {'length':>10}  "
              f"{'new offset':>10}  {'new length':>10}  replacement")
        for index, entry in enumerate(editor.get_entries()):
            print(f"{index:>5}  {entry.id:>10}  {entry.original_offset:>10}  "
                  f"{entry.original_length:>10}  {output_offsets[index]:>10}  "
                  f"{entry.current_length:>10}  {pending[index] or ''}")
        return True

    def export(self, args: Any) -> bool:
        args = self._as_dict(args, "index")
        output = args.get("output", "")
        if not output:
            logger.error("Export destination not specified")
            return False
        selector, by_id = self._selector(args)
        self._get_editor().export_entry(selector, output, by_id)
        return True

    def export_all(self, args: Any) -> bool:
        args = self._as_dict(args, "output")
        folder = args.get("output", "") or self.app_config.export_folder
        if not folder:
            logger.error("Export folder not specified")
            return False
        paths = self._get_editor().export_all(folder)
        self.app_config.export_folder = folder
        logger.info(f"Exported {len(paths)} entries to {folder}")
        return True

    def replace(self, args: Any) -> bool:
        if not isinstance(args, dict) or not args.get("file", ""):
            logger.error("Replacement file not specified")
            return False
        selector, by_id = self._selector(args)
        self._get_editor().set_replacement(selector, args["file"], by_id)
        return True

    def replace_folder(self, args: Any) -> bool:
        args = self._as_dict(args, "folder")
        folder = args.get("folder", "")
        if not folder:
            logger.error("Replacement folder not specified")
            return False
        count = self._get_editor().replace_from_folder(folder)
        logger.info(f"Set {count} replacements from {folder}")
        return True

    def clear(self, args: Any) -> bool:
        editor = self._get_editor()
        args = self._as_dict(args, "index")
        if args.get("all", False):
            editor.clear_all_replacements()
            return True
        selector, by_id = self._selector(args)
        editor.clear_replacement(selector, by_id)
        return True

    def status(self, args: Any) -> bool:
        if self.editor is None:
            print("No bank is open")
            return True
        for key, value in self.editor.get_status().items():
            print(f"{key}: {value}")
        return True

    def write(self, args: Any) -> bool:
        args = self._as_dict(args, "output")
        output = args.get("output", "")
        if not output:
            logger.error("Output path not specified")
            return False
        editor = self._get_editor()
        endian = self._resolve_endian(args) if "endian" in args else editor.endian
        editor.write(output, endian)
        return True

    def close(self, args: Any) -> bool:
        self.cleanup()
        return True

    def help(self, args: Any) -> bool:
        print("""
Available commands:
  open:<path>                 - Open a SoundBank
  list                        - List entries of the open bank
  export                      - {"index": N, "output": "<file>"} or {"id": ID, ...}
  export_all:<dir>            - Export every entry as <seq>_<id>.wem
  replace                     - {"index": N, "file": "<file>"} or {"id": ID, ...}
  replace_folder:<dir>        - Replace entries from <id>.wem / <seq>_<id>.wem files
  clear                       - {"index": N}, {"id": ID} or {"all": true}
  status                      - Show state of the open bank
  write:<path>                - Write the edited bank
  close                       - Close the open bank
  help                        - Show this help
        """)
        return True
