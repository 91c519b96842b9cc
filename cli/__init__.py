"""
CLI Main Module - Command line front end of the SoundBank editor
Supports direct subcommands and workflow mode execution
"""

import argparse
import json
import logging
import os
from typing import Any

import config as cfg

from const import BIG_ENDIAN
from log import enable_verbose_mode, logger, set_log_level


VERSION = "1.0.0"


class CLIMain:
    """CLI Main Controller"""

    def __init__(self, app_config: cfg.Config | None = None, endian: str = ""):
        self.app_config = app_config
        self.endian = endian
        self.commands = None

    def _lazy_init(self):
        """Delayed initialization to avoid circular import"""
        if self.commands is None:
            from .commands import CLICommands

            self.commands = CLICommands(self.app_config, self.endian)

    def build_parser(self) -> argparse.ArgumentParser:
        common = argparse.ArgumentParser(add_help=False)
        common.add_argument(
            "--verbose", "-v", action="store_true", help="Verbose output"
        )
        common.add_argument(
            "--big-endian", action="store_true",
            help="Read and write the bank as big endian"
        )
        common.add_argument(
            "--config", default=cfg.DEFAULT_CONFIG_PATH,
            help="Configuration file path"
        )

        parser = argparse.ArgumentParser(
            description="Wwise SoundBank Editor - CLI Mode",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Example usage:
  # List embedded media
  python bnk_editor.py list init.bnk

  # Export one entry by id, or all of them
  python bnk_editor.py export init.bnk --id 123456 --output 123456.wem
  python bnk_editor.py export init.bnk --all --output ./dump

  # Replace entries and write a new bank
  python bnk_editor.py patch init.bnk --replace 0=new.wem --output out.bnk
  python bnk_editor.py patch init.bnk --by-id --replace 123456=new.wem --output out.bnk
  python bnk_editor.py patch init.bnk --folder ./dump --output out.bnk

  # Workflow mode
  python bnk_editor.py workflow example_workflow.json
            """,
        )
        parser.add_argument(
            "--version", action="version", version=f"BNK Editor CLI v{VERSION}"
        )

        subparsers = parser.add_subparsers(dest="mode", help="Run mode")

        list_parser = subparsers.add_parser(
            "list", parents=[common], help="List entries"
        )
        list_parser.add_argument("bank", help="SoundBank path")

        export_parser = subparsers.add_parser(
            "export", parents=[common], help="Export entries"
        )
        export_parser.add_argument("bank", help="SoundBank path")
        export_group = export_parser.add_mutually_exclusive_group(required=True)
        export_group.add_argument("--index", type=int, help="Entry position")
        export_group.add_argument("--id", type=int, help="Entry id")
        export_group.add_argument(
            "--all", action="store_true", help="Export every entry into a folder"
        )
        export_parser.add_argument(
            "--output", "-o", required=True, help="Output file or folder"
        )

        patch_parser = subparsers.add_parser(
            "patch", parents=[common], help="Replace entries and write a new bank"
        )
        patch_parser.add_argument("bank", help="SoundBank path")
        patch_parser.add_argument(
            "--replace", action="append", default=[],
            help="Replacement (selector=file), repeatable"
        )
        patch_parser.add_argument(
            "--folder", help="Folder of <id>.wem or <seq>_<id>.wem replacements"
        )
        patch_parser.add_argument(
            "--by-id", action="store_true",
            help="Selectors given to --replace are entry ids, not positions"
        )
        patch_parser.add_argument(
            "--output", "-o", required=True, help="Output bank path"
        )

        workflow_parser = subparsers.add_parser(
            "workflow", parents=[common], help="Workflow mode execution"
        )
        workflow_group = workflow_parser.add_mutually_exclusive_group(required=True)
        workflow_group.add_argument("workflow_file", nargs="?", help="Workflow config file path")
        workflow_group.add_argument("--inline", help="Inline workflow JSON string")
        workflow_parser.add_argument(
            "--dry-run", action="store_true", help="Show steps to be executed only, do not actually execute"
        )
        workflow_parser.add_argument(
            "--set", action="append", help="Set variable (key=value)"
        )

        return parser

    def parse_arguments(self, argv: list[str] | None = None) -> argparse.Namespace:
        """Parse command line arguments"""
        return self.build_parser().parse_args(argv)

    def parse_workflow_file(self, workflow_file: str) -> dict[str, Any]:
        """Parse workflow file"""
        if not os.path.exists(workflow_file):
            raise FileNotFoundError(f"Workflow file not found: {workflow_file}")

        with open(workflow_file, "r", encoding="utf-8") as f:
            workflow = json.load(f)

        return workflow

    def parse_inline_workflow(self, inline_json: str) -> dict[str, Any]:
        """Parse inline workflow JSON"""
        try:
            workflow = json.loads(inline_json)
            return workflow
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON format: {e}")

    def replace_variables(self, value: Any, context_vars: dict[str, Any]) -> Any:
        """Replace variable placeholders"""
        if isinstance(value, str):
            # Replace {variable} format variables
            for var_name, var_value in context_vars.items():
                placeholder = f"{{{var_name}}}"
                if placeholder in value:
                    value = value.replace(placeholder, str(var_value))
            return value
        elif isinstance(value, dict):
            return {k: self.replace_variables(v, context_vars) for k, v in value.items()}
        elif isinstance(value, list):
            return [self.replace_variables(item, context_vars) for item in value]
        else:
            return value

    def execute_workflow(
        self,
        workflow: dict[str, Any],
        dry_run: bool = False,
        set_vars: list[str] | None = None
    ) -> bool:
        """Execute workflow"""
        self._lazy_init()

        description = workflow.get("description", "Unnamed workflow")
        context_vars = workflow.get("context", {})
        steps = workflow.get("steps", [])

        logger.info(f"Starting workflow: {description}")
        logger.info(f"Total {len(steps)} steps")

        # Handle variables set by command line
        if set_vars:
            for var_str in set_vars:
                if "=" in var_str:
                    key, value = var_str.split("=", 1)
                    context_vars[key.strip()] = value.strip()

        if dry_run:
            logger.info("Dry-run mode, showing steps to be executed:")
            for i, step in enumerate(steps):
                name = step.get("name", f"Step {i+1}")
                command = step.get("command", "Unknown command")
                args = self.replace_variables(step.get("args", {}), context_vars)
                logger.info(f"  {i + 1}. {name} ({command})")
                logger.info(f"      Args: {args}")
            return True

        try:
            return self.run_steps(steps, context_vars)
        finally:
            self.commands.cleanup()
            logger.info("Workflow execution completed")

    def run_steps(
        self,
        steps: list[dict[str, Any]],
        context_vars: dict[str, Any] | None = None
    ) -> bool:
        self._lazy_init()
        context_vars = context_vars or {}

        for i, step in enumerate(steps):
            name = step.get("name", f"Step {i+1}")
            command = step.get("command", "")
            args = self.replace_variables(step.get("args", {}), context_vars)
            on_error = step.get("on_error", "stop")

            logger.info(f"Executing step {i + 1}/{len(steps)}: {name}")
            if self.commands.execute_command(command, args):
                logger.info(f"Step {i + 1} succeeded")
                continue

            logger.error(f"Step {i + 1} failed")
            if on_error == "continue":
                logger.warning("Continuing to next step")
                continue
            return False

        return True

    def steps_from_arguments(self, args: argparse.Namespace) -> list[dict[str, Any]]:
        """Translate a direct subcommand into workflow steps"""
        open_args: dict[str, Any] = {"path": args.bank}
        if args.big_endian:
            open_args["endian"] = "big"
        steps = [{"command": "open", "args": open_args}]

        if args.mode == "list":
            steps.append({"command": "list"})
        elif args.mode == "export":
            if args.all:
                steps.append({"command": "export_all", "args": {"output": args.output}})
            elif args.id is not None:
                steps.append({"command": "export",
                              "args": {"id": args.id, "output": args.output}})
            else:
                steps.append({"command": "export",
                              "args": {"index": args.index, "output": args.output}})
        elif args.mode == "patch":
            if args.folder:
                steps.append({"command": "replace_folder",
                              "args": {"folder": args.folder}})
            for pair in args.replace:
                if "=" not in pair:
                    raise ValueError(f"Replacement '{pair}' is not selector=file")
                selector, path = pair.split("=", 1)
                key = "id" if args.by_id else "index"
                steps.append({"command": "replace",
                              "args": {key: int(selector), "file": path}})
            steps.append({"command": "write", "args": {"output": args.output}})

        steps.append({"command": "close"})
        return steps


def main(argv: list[str] | None = None) -> int:
    """Main function"""
    cli = CLIMain()

    try:
        args = cli.parse_arguments(argv)
        if args.mode is None:
            print("Error: Please specify run mode (list, export, patch, workflow)")
            return 1

        if args.verbose:
            enable_verbose_mode()
            set_log_level(logging.DEBUG)

        app_config = cfg.load_config(args.config)
        if app_config is None:
            return 1
        cli.app_config = app_config
        if args.big_endian:
            cli.endian = BIG_ENDIAN

        if args.mode == "workflow":
            if args.inline:
                workflow = cli.parse_inline_workflow(args.inline)
            else:
                workflow = cli.parse_workflow_file(args.workflow_file)
            success = cli.execute_workflow(workflow, args.dry_run, args.set)
        else:
            success = cli.execute_workflow(
                {"description": args.mode, "steps": cli.steps_from_arguments(args)}
            )

        app_config.save_config(args.config)
        return 0 if success else 1

    except KeyboardInterrupt:
        logger.info("User interrupted")
        return 1
    except (OSError, ValueError) as e:
        logger.error(f"CLI execution error: {e}")
        return 1
