"""GitHub Actions workflow commands used to report step results."""

from __future__ import annotations

import os
import uuid
from pathlib import Path


def _format_entry(name: str, value: str) -> str:
    if "\n" not in value:
        return f"{name}={value}\n"
    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    return f"{name}<<{delimiter}\n{value}\n{delimiter}\n"


def _append(path: str, name: str, value: str) -> None:
    with Path(path).open("a", encoding="utf-8") as handle:
        handle.write(_format_entry(name, value))


def set_output(name: str, value: str) -> None:
    """Expose ``value`` as a step output."""

    target = os.environ.get("GITHUB_OUTPUT")
    if target:
        _append(target, name, value)
    else:
        print(f"::set-output name={name}::{value}")


def export_variable(name: str, value: str) -> None:
    """Make ``value`` available to this process and to later steps of the job."""

    os.environ[name] = value
    target = os.environ.get("GITHUB_ENV")
    if target:
        _append(target, name, value)


def set_failed(message: str) -> None:
    print(f"::error::{_escape(message)}")


def _escape(message: str) -> str:
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


__all__ = ["export_variable", "set_failed", "set_output"]
