"""SpecClient - turns a service's interface description into callable operations.

Flow:
    describe(service)  GET <address>/<descriptor_suffix>
                       → parse_description() (shape-checked)
                       → immutable Operation table
    invoke(tag, operation_id, args)
                       → HTTP call against <address><path>
                       → decoded result payload

Operations are indexed by (tag, operation_id). When two methods under one
path share an operation_id (the path is used when operationId is absent),
the entry parsed later replaces the earlier one.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote

import httpx

from servicehub.describe.schema import (
    DescriptionShapeError,
    InterfaceDescription,
    parse_description,
)
from servicehub.errors import DescribeError, InvokeError, UnknownOperation
from servicehub.logging import get_component_logger
from servicehub.protocols import LoggerProtocol, Operation, Service
from servicehub.settings import Settings
from servicehub.utils.http import client_scope, decode_body

_PATH_PARAM = re.compile(r"\{([^{}]+)\}")

# Methods whose remaining arguments travel as query parameters
_QUERY_METHODS = frozenset({"get", "delete", "head", "options"})


def build_operations(description: InterfaceDescription) -> Tuple[Operation, ...]:
    """Flatten a validated description into Operations, in document order."""
    table: Dict[Tuple[str, str], Operation] = {}
    for path, methods in description.paths.items():
        shares_path = len(methods) > 1
        for method, spec in methods.items():
            operation = Operation(
                operation_id=spec.operation_id or path,
                path=path,
                method=method,
                tags=tuple(spec.tags),
                description=spec.description,
                shares_path=shares_path,
            )
            # Later entries win within a path
            table[(path, operation.operation_id)] = operation
    return tuple(table.values())


class SpecClient:
    """Descriptor-driven HTTP client for one Service.

    Usage:
        client = SpecClient(settings=settings, logger=logger)
        await client.describe(service)
        for op in client.operations():
            print(op.label, op.tags)
        result = await client.invoke("core", "ping", {})
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        logger: Optional[LoggerProtocol] = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Descriptor suffix and HTTP timeout. Defaults to Settings().
            http_client: Shared AsyncClient. When omitted a short-lived
                client is opened per request.
            logger: Injected logger.
        """
        self._settings = settings or Settings()
        self._http_client = http_client
        self._logger = get_component_logger("SpecClient", logger)
        self._service: Optional[Service] = None
        self._description: Optional[InterfaceDescription] = None
        self._operations: Tuple[Operation, ...] = ()
        self._index: Dict[Tuple[str, str], Operation] = {}

    # =========================================================================
    # Description
    # =========================================================================

    async def describe(self, service: Service) -> Tuple[Operation, ...]:
        """Fetch, validate and index the service's interface description.

        Returns:
            The operation table.

        Raises:
            DescribeError: On fetch failure, non-JSON body or shape mismatch.
        """
        url = self.descriptor_url(service.address)
        self._logger.debug("describe_fetching", url=url)

        try:
            async with client_scope(self._http_client, self._settings.http_timeout) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DescribeError(
                service.address, f"HTTP {e.response.status_code} from {url}"
            ) from e
        except httpx.RequestError as e:
            raise DescribeError(service.address, f"request failed: {e}") from e

        try:
            document = response.json()
        except ValueError as e:
            raise DescribeError(service.address, "description is not valid JSON") from e

        try:
            description = parse_description(document)
        except DescriptionShapeError as e:
            raise DescribeError(service.address, str(e)) from e

        operations = build_operations(description)
        index: Dict[Tuple[str, str], Operation] = {}
        for operation in operations:
            for tag in operation.tags:
                index[(tag, operation.operation_id)] = operation

        self._service = service
        self._description = description
        self._operations = operations
        self._index = index

        self._logger.info(
            "service_described",
            title=description.info.title,
            kind=description.kind,
            operations=len(operations),
            dispatchable=len(index),
        )
        return operations

    def descriptor_url(self, address: str) -> str:
        return str(httpx.URL(address.rstrip("/") + "/").join(self._settings.descriptor_suffix))

    @property
    def described(self) -> bool:
        return self._description is not None

    @property
    def title(self) -> str:
        return self._require_description().info.title

    @property
    def description(self) -> str:
        return self._require_description().info.description

    def operations(self) -> Tuple[Operation, ...]:
        """The validated, immutable operation table."""
        self._require_description()
        return self._operations

    def find(self, tag: str, operation_id: str) -> Optional[Operation]:
        return self._index.get((tag, operation_id))

    def _require_description(self) -> InterfaceDescription:
        if self._description is None:
            address = self._service.address if self._service else "<undescribed>"
            raise DescribeError(address, "describe() has not completed")
        return self._description

    # =========================================================================
    # Invocation
    # =========================================================================

    async def invoke(
        self,
        tag: str,
        operation_id: str,
        args: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Invoke an operation and return its decoded result payload.

        Raises:
            UnknownOperation: If (tag, operation_id) is not in the table.
            InvokeError: If the HTTP call fails or returns a non-2xx status.
        """
        operation = self._index.get((tag, operation_id))
        if operation is None or self._service is None:
            raise UnknownOperation(tag, operation_id)

        remaining = dict(args or {})
        path = self._fill_path(operation, remaining)
        base = self._require_description().base_path()
        url = self._service.address.rstrip("/") + base + path

        params: Optional[Dict[str, Any]] = None
        body: Optional[Dict[str, Any]] = None
        if operation.method in _QUERY_METHODS:
            params = remaining or None
        else:
            body = remaining or None

        self._logger.debug(
            "operation_invoking",
            operation_id=operation_id,
            method=operation.method,
            url=url,
        )

        try:
            async with client_scope(self._http_client, self._settings.http_timeout) as client:
                response = await client.request(
                    operation.method.upper(),
                    url,
                    params=params,
                    json=body,
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            self._logger.warning(
                "operation_failed",
                operation_id=operation_id,
                status=e.response.status_code,
            )
            raise InvokeError(operation_id, str(e), status_code=e.response.status_code) from e
        except httpx.RequestError as e:
            self._logger.warning("operation_failed", operation_id=operation_id, error=str(e))
            raise InvokeError(operation_id, str(e)) from e

        return decode_body(response)

    @staticmethod
    def _fill_path(operation: Operation, args: Dict[str, Any]) -> str:
        """Substitute ``{name}`` placeholders, consuming the used arguments."""
        missing: List[str] = []

        def substitute(match: "re.Match[str]") -> str:
            name = match.group(1)
            if name not in args:
                missing.append(name)
                return match.group(0)
            return quote(str(args.pop(name)), safe="")

        path = _PATH_PARAM.sub(substitute, operation.path)
        if missing:
            raise InvokeError(
                operation.operation_id,
                f"missing path parameter(s): {', '.join(missing)}",
            )
        return path if path.startswith("/") else "/" + path


__all__ = ["SpecClient", "build_operations"]
