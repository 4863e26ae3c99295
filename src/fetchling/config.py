"""
Client-wide options and per-call request configuration.
"""

from __future__ import annotations

import json
import os
import typing as t

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_XHR_PATH = "/api"
# Wait 20ms after the first consolidated request before sweeping the queue.
DEFAULT_BATCH_WINDOW_SECONDS = 0.02
ENV_PREFIX = "FETCHLING_"


class RequestConfig(BaseModel):
    """
    Per-call options, merged over the client defaults.

    Attributes
    ----------
    uri : str | None
        Destination override. Falls back to the client ``xhr_path`` when unset.
    consolidate : bool
        Opt the call into time-windowed batching.
    batch_tag : str | None
        Opaque tag further partitioning batches that share a destination.
    post_for_read : bool
        Send reads as POST envelopes instead of GET URIs.
    require_crumb_for_read : bool
        Gate reads on the crumb and keep the crumb in GET query strings.
    id_param : str | None
        Name of the param identifying a singular resource instance.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    uri: str | None = None
    consolidate: bool = False
    batch_tag: str | None = None
    post_for_read: bool = False
    require_crumb_for_read: bool = False
    id_param: str | None = None

    def merged(self, overrides: RequestConfig | t.Mapping[str, t.Any] | None = None) -> RequestConfig:
        """
        Return a copy of ``self`` with per-call overrides applied.

        Parameters
        ----------
        overrides : RequestConfig | Mapping[str, typing.Any] | None
            Per-call options. Only the fields explicitly set on a ``RequestConfig``
            override the defaults.

        Returns
        -------
        RequestConfig
            The merged configuration.
        """
        if overrides is None:
            return self
        if isinstance(overrides, RequestConfig):
            update = overrides.model_dump(exclude_unset=True)
        else:
            update = dict(RequestConfig.model_validate(overrides).model_dump(exclude_unset=True))
        return self.model_validate({**self.model_dump(), **update})

    @property
    def group_key(self) -> str:
        key = f"uri:{self.uri or ''}"
        if self.batch_tag:
            key += f";batch:{self.batch_tag}"
        return key


class FetcherOptions(BaseModel):
    """
    Options of a ``Fetcher`` instance, fixed at construction.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    xhr_path: str = DEFAULT_XHR_PATH
    batch_window_seconds: float = DEFAULT_BATCH_WINDOW_SECONDS
    context: dict[str, t.Any] = Field(default_factory=dict)
    require_crumb: bool = False
    defaults: RequestConfig = Field(default_factory=RequestConfig)
    timeout_seconds: float = 30.0
    max_retries: int = 2

    @property
    def crumb(self) -> t.Any:
        return self.context.get("crumb")

    @classmethod
    def from_env(cls, **overrides: t.Any) -> FetcherOptions:
        """
        Build options from ``FETCHLING_*`` environment variables.

        A ``.env`` file in the working directory is loaded first.
        ``FETCHLING_CONTEXT`` holds a JSON object. Keyword overrides win over
        the environment.

        Parameters
        ----------
        **overrides : typing.Any
            Explicit option values.

        Returns
        -------
        FetcherOptions
            Validated options.
        """
        load_dotenv()
        values: dict[str, t.Any] = {}
        for field_name in ("xhr_path", "batch_window_seconds", "require_crumb", "timeout_seconds", "max_retries"):
            raw = os.getenv(f"{ENV_PREFIX}{field_name.upper()}")
            if raw is not None:
                values[field_name] = raw
        raw_context = os.getenv(f"{ENV_PREFIX}CONTEXT")
        if raw_context:
            values["context"] = json.loads(raw_context)
        values.update(overrides)
        return cls.model_validate(values)
