"""Pydantic schemas for OpenMHz and FlareSolverr payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ProxySolution(BaseModel):
    """Solved page returned by FlareSolverr."""

    model_config = ConfigDict(extra="ignore")

    url: str | None = Field(default=None, description="Final URL after challenge solving.")
    status: int | None = Field(default=None, description="Upstream HTTP status code.")
    response: str = Field(description="Rendered page HTML for the requested URL.")


class ProxyEnvelope(BaseModel):
    """Response envelope for a FlareSolverr ``request.get`` command."""

    model_config = ConfigDict(extra="ignore")

    status: str = Field(description="'ok' when the request succeeded.")
    message: str = Field(default="", description="Diagnostic message from the proxy.")
    solution: ProxySolution | None = Field(
        default=None, description="Solved page; absent when the command failed."
    )


class SystemEntry(BaseModel):
    """Canonical representation of a system in the systems listing."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(description="Human-readable system name.")
    short_name: str = Field(alias="shortName", description="Short code used in API paths.")
    system_type: str | None = Field(default=None, alias="systemType")
    city: str | None = Field(default=None)
    state: str | None = Field(default=None)
    active: bool = Field(default=False)
    last_active: str | None = Field(default=None, alias="lastActive")
    call_avg: float | None = Field(default=None, alias="callAvg")
    description: str | None = Field(default=None)


class SystemsResponse(BaseModel):
    """Response envelope for the systems endpoint."""

    model_config = ConfigDict(extra="ignore")

    success: bool = Field(description="Whether the API reported success.")
    systems: list[SystemEntry] = Field(default_factory=list)


class CallEntry(BaseModel):
    """Canonical representation of a recorded call."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(alias="_id", description="Unique call identifier.")
    url: str = Field(default="", description="Absolute URL of the call recording.")
    filename: str = Field(default="", description="Recording file name.")
    time: str = Field(default="", description="Recording timestamp as emitted by OpenMHz.")


class CallsResponse(BaseModel):
    """Response envelope for the per-system calls endpoint."""

    model_config = ConfigDict(extra="ignore")

    calls: list[CallEntry] = Field(description="Recent calls, newest first.")
