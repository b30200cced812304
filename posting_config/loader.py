"""
Configuration loader (``posting_config.loader``).

Responsibility
--------------
Reads a YAML configuration set and parses it into the frozen
``posting_config.schema`` dataclasses.  Runtime callers go through
``posting_config.get_posting_config()``.

Failure modes
-------------
* Missing file, malformed YAML, missing required keys and bad values all
  surface as ``ConfigLoadError`` naming the file.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from posting_config.schema import AccountDef, PostingConfigSet, RoleBindingDef, SeriesDef
from posting_kernel.exceptions import ConfigLoadError


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_series(data: dict[str, Any]) -> SeriesDef:
    return SeriesDef(
        key=str(data["key"]),
        name=data["name"],
        prefix=str(data["prefix"]),
        separator=str(data.get("separator", "-")),
        number_length=int(data.get("number_length", 5)),
        year_format=str(data.get("year_format", "yy")),
        reset_rule=str(data.get("reset_rule", "yearly")),
        scope=str(data.get("scope", "company")),
        starting_number=int(data.get("starting_number", 1)),
    )


def parse_account(data: dict[str, Any]) -> AccountDef:
    parent = data.get("parent")
    return AccountDef(
        code=str(data["code"]),
        name=data["name"],
        account_type=str(data["type"]),
        account_group=data.get("group"),
        parent_code=str(parent) if parent is not None else None,
        allow_manual_entry=bool(data.get("manual", True)),
    )


def parse_role_bindings(data: dict[str, Any]) -> tuple[RoleBindingDef, ...]:
    return tuple(
        RoleBindingDef(role=str(role), account_code=str(code))
        for role, code in sorted(data.items())
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of the raw configuration."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_config_set(data: dict[str, Any]) -> PostingConfigSet:
    """
    Build a PostingConfigSet from parsed YAML.

    Raises:
        KeyError: a required key is missing.
        ValueError: a value has the wrong shape.
        decimal.InvalidOperation: the tolerance is not a number.
    """
    return PostingConfigSet(
        config_id=str(data["config_id"]),
        version=int(data.get("version", 1)),
        description=data.get("description", ""),
        balance_tolerance=Decimal(str(data.get("balance_tolerance", "0.01"))),
        number_series=tuple(parse_series(s) for s in data.get("number_series", ())),
        chart_of_accounts=tuple(
            parse_account(a) for a in data.get("chart_of_accounts", ())
        ),
        role_bindings=parse_role_bindings(data.get("role_bindings") or {}),
        checksum=compute_checksum(data),
    )


def load_config_set(path: Path) -> PostingConfigSet:
    """Load and parse one configuration file."""
    try:
        data = load_yaml_file(path)
    except FileNotFoundError as exc:
        raise ConfigLoadError(str(path), "file not found") from exc
    except yaml.YAMLError as exc:
        raise ConfigLoadError(str(path), f"invalid YAML: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigLoadError(str(path), "top level must be a mapping")

    try:
        return parse_config_set(data)
    except KeyError as exc:
        raise ConfigLoadError(str(path), f"missing required key {exc}") from exc
    except (TypeError, ValueError, InvalidOperation) as exc:
        raise ConfigLoadError(str(path), f"invalid value: {exc}") from exc
