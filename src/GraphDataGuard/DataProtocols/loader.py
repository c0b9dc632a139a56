"""Glue between the engine and a caller-provided transport.

:class:`DataLoader` is what a visualization runtime's request hook calls: it
resolves the reference, hands the sanitized URL to ``fetch`` and parses the
result.  The loader never touches the network; ``fetch`` is the only place
where I/O happens and it only ever sees URLs the engine produced.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from .descriptors import SanitizedURL
from .engine import DataReference, ProtocolEngine

__all__ = ["DataLoader", "Fetch"]

LOGGER = logging.getLogger(__name__)

Fetch = Callable[[SanitizedURL], Any]


class DataLoader:
    """Resolve, fetch and parse data references through one engine.

    Args:
        engine: Engine used for resolution and parsing.
        fetch: Transport callable; receives a :class:`SanitizedURL` and returns
            the raw body (``str``/``bytes``) or, with ``decoded=True``, an
            already decoded JSON value.
        default_host: Host of the page embedding the graph.
        decoded: Whether ``fetch`` returns decoded values.
    """

    def __init__(
        self,
        engine: ProtocolEngine,
        fetch: Fetch,
        *,
        default_host: Optional[str] = None,
        decoded: bool = False,
    ) -> None:
        self._engine = engine
        self._fetch = fetch
        self._default_host = default_host
        self._decoded = decoded

    def sanitize(self, reference: DataReference) -> SanitizedURL:
        return self._engine.resolve(reference, self._default_host)

    def load(self, reference: DataReference) -> Any:
        """Return the normalized data for ``reference``.

        Resolution errors are raised before ``fetch`` is called; transport
        errors raised by ``fetch`` propagate unchanged.
        """

        url = self.sanitize(reference)
        LOGGER.debug("fetching data reference", extra={"stage": "fetch", "kind": url.kind})
        payload = self._fetch(url)
        return self._engine.parse(payload, url.kind, decoded=self._decoded)
