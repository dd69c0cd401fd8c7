"""Output formatting helpers for KubeKit CLI."""

import json
import sys
from datetime import datetime
from typing import Any

import yaml
from rich.console import Console
from rich.text import Text

from kubekit.resource import ResourceHandle

OUTPUT_FORMATS = ("name", "json", "yaml")


class OutputFormatter:
    """Handles output formatting for both JSON and pretty (human) modes."""

    def __init__(self, json_mode: bool = False, output_format: str = "name") -> None:
        """Initialize the formatter."""
        self.json_mode = json_mode
        self.output_format = output_format
        self.console = Console(highlight=False, soft_wrap=True)
        self.err_console = Console(stderr=True, highlight=False, soft_wrap=True)

    def success(self, data: Any, message: str = "Operation completed") -> None:
        """Output a success response."""
        if self.json_mode:
            self._json_output(True, data=data, message=message)
        else:
            self._pretty_success(data, message)

    def error(
        self,
        code: str,
        message: str,
        suggestion: str | None = None,
        exit_code: int = 1,
        details: list[str] | None = None,
        data: Any = None,
    ) -> None:
        """Output an error response and exit."""
        if self.json_mode:
            error: dict[str, Any] = {"code": code, "message": message, "suggestion": suggestion}
            if details is not None:
                error["errors"] = details
            self._json_output(False, data=data, error=error)
        else:
            self._pretty_error(code, message, suggestion, details)
        sys.exit(exit_code)

    def print_status(self, handle: ResourceHandle, operation: str) -> None:
        """Print one resource after an operation.

        In JSON mode nothing is printed here; the command emits a single
        envelope once every resource has been handled.
        """
        if self.json_mode:
            return

        if self.output_format == "json":
            print(json.dumps(handle.object, indent=2, default=str))
        elif self.output_format == "yaml":
            print("---")
            print(yaml.safe_dump(handle.object, default_flow_style=False), end="")
        else:
            self.console.print(f"{handle.ref} {operation}", markup=False)

    def _json_output(
        self,
        success: bool,
        data: Any = None,
        message: str | None = None,
        error: dict[str, Any] | None = None,
    ) -> None:
        """Output in JSON format."""
        output: dict[str, Any] = {
            "success": success,
            "timestamp": datetime.utcnow().isoformat() + "Z",
        }

        if success:
            output["data"] = data
            output["message"] = message
        else:
            output["error"] = error
            if data is not None:
                output["data"] = data

        print(json.dumps(output, indent=2, default=str))

    def _pretty_success(self, data: Any, message: str) -> None:
        """Output a success message in pretty format."""
        self.console.print(f"[green]{message}[/green]")

        if isinstance(data, dict):
            for key, value in data.items():
                self.console.print(f"  [cyan]{key}:[/cyan] {value}")
        elif data is not None:
            self.console.print(f"  {data}")

    def _pretty_error(
        self,
        code: str,
        message: str,
        suggestion: str | None,
        details: list[str] | None = None,
    ) -> None:
        """Output an error in pretty format.

        When details are given each one gets its own ``error:`` line and the
        summary message is left out.
        """
        if details:
            for detail in details:
                line = Text()
                line.append("error: ", style="bold red")
                line.append(detail)
                self.err_console.print(line)
        else:
            error_text = Text()
            error_text.append("Error: ", style="bold red")
            error_text.append(f"[{code}] ", style="red")
            error_text.append(message)
            self.err_console.print(error_text)

        if suggestion:
            self.err_console.print(Text.assemble(("Suggestion: ", "yellow"), suggestion))
