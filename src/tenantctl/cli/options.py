"""Typed per-command option models."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class CommandOptions(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class ListOptions(CommandOptions):
    long: bool = False


class EmailTemplateListOptions(ListOptions):
    pass


class VariableListOptions(ListOptions):
    pass


class VariableSetOptions(CommandOptions):
    variable_id: Optional[str] = None
    value: Optional[str] = None
    description: Optional[str] = None


class IdpListOptions(ListOptions):
    pass


class IdpExportOptions(CommandOptions):
    idp_id: Optional[str] = None
    file: Optional[str] = None
    all: bool = False
    all_separate: bool = False
    metadata: bool = True


class JourneyListOptions(ListOptions):
    pass


class JourneyDescribeOptions(CommandOptions):
    journey_id: Optional[str] = None
    file: Optional[str] = None
    output_file: Optional[str] = None
    markdown: bool = False
    override_version: Optional[str] = None


class ConnectionAddOptions(CommandOptions):
    validate_connection: bool = True


class ConnectionListOptions(ListOptions):
    pass
