"""Namespace list/watch against the Kubernetes API."""

from __future__ import annotations

import asyncio
from typing import Any

from kubernetes_asyncio import watch as k8s_watch
from kubernetes_asyncio.client.exceptions import ApiException

from kubesource.observability.logging import get_logger
from kubesource.watcher.namespaces import NamespaceListing

_log = get_logger("watcher.source")

# Server-side lifetime of one watch connection; the watcher reopens on close
_DEFAULT_WATCH_SECONDS = 300


class KubeNamespaceSource:
    """Lists and watches namespaces through a kubernetes_asyncio ``CoreV1Api``."""

    def __init__(
        self,
        core_api: Any,
        timeout: float = 10.0,
        watch_timeout_seconds: int = _DEFAULT_WATCH_SECONDS,
    ) -> None:
        self._api = core_api
        self._timeout = timeout
        self._watch_timeout_seconds = watch_timeout_seconds

    async def list_namespaces(self) -> NamespaceListing:
        async with asyncio.timeout(self._timeout):
            resp = await self._api.list_namespace()
        names = frozenset(ns.metadata.name for ns in resp.items or [])
        return NamespaceListing(names=names, resource_version=resp.metadata.resource_version or "")

    async def open_watch(self, resource_version: str) -> NamespaceWatchStream:
        """Open a namespace watch starting at *resource_version*.

        Decoding is left to ``kubernetes_asyncio.watch.Watch``, but the HTTP
        request is issued here rather than on first iteration, so a refused
        subscription raises before this returns.

        Raises:
            ApiException: the API server answered with a non-2xx status.
        """
        watch = k8s_watch.Watch()
        stream = watch.stream(
            self._api.list_namespace,
            allow_watch_bookmarks=True,
            resource_version=resource_version,
            timeout_seconds=self._watch_timeout_seconds,
        )
        try:
            async with asyncio.timeout(self._timeout):
                stream.resp = await stream.func()
            # Non-2xx bodies are not checked by the client when content is streamed
            if not 200 <= stream.resp.status < 300:
                raise ApiException(status=stream.resp.status, reason=stream.resp.reason)
        except BaseException:
            await stream.close()
            raise
        _log.info("namespace_watch_opened", resource_version=resource_version)
        return NamespaceWatchStream(stream)


class NamespaceWatchStream:
    """Watch events as ``{"type", "object"}`` dicts, ``object`` left as sent by the server.

    ``aclose()`` releases the connection whether or not iteration started.
    """

    def __init__(self, watch: k8s_watch.Watch) -> None:
        self._watch = watch

    def __aiter__(self) -> NamespaceWatchStream:
        return self

    async def __anext__(self) -> dict[str, Any]:
        while True:
            # Watch closes itself on any error, end of stream included
            event = await self._watch.__anext__()
            # Undecodable lines come back as raw text
            if isinstance(event, dict):
                return {"type": event["type"], "object": event["raw_object"]}

    async def aclose(self) -> None:
        await self._watch.close()
