"""
Error handling utilities and custom exceptions for the namespace provisioner
"""

import functools
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from fastapi import HTTPException
from kubernetes.client.rest import ApiException

F = TypeVar("F", bound=Callable[..., Any])

logger = logging.getLogger(__name__)


class ProvisionerError(Exception):
    """Base exception for namespace provisioning operations"""

    def __init__(
        self, message: str, operation: str | None = None, resource: str | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.resource = resource


class ConfigurationError(ProvisionerError):
    """Invalid configuration detected at startup"""


class NamespaceValidationError(ProvisionerError):
    """A namespace is not permitted for the requesting user"""


class ProviderUnavailableError(ProvisionerError):
    """A pluggable provider (identity fetcher, token store) could not serve the request"""


class ScmUnauthorizedError(ProviderUnavailableError):
    """The SCM provider rejected the user's credentials"""


class ScmCommunicationError(ProviderUnavailableError):
    """The SCM provider could not be reached or answered unexpectedly"""


class InfrastructureError(ProvisionerError):
    """Provisioning failed because of the cluster or a required collaborator"""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        resource: str | None = None,
        workspace_id: str | None = None,
        namespace: str | None = None,
        step: str | None = None,
    ) -> None:
        super().__init__(message, operation, resource)
        self.workspace_id = workspace_id
        self.namespace = namespace
        self.step = step

    def with_context(
        self,
        workspace_id: str | None = None,
        namespace: str | None = None,
        step: str | None = None,
    ) -> "InfrastructureError":
        """Fill in provisioning context that is not yet known to the error."""
        self.workspace_id = self.workspace_id or workspace_id
        self.namespace = self.namespace or namespace
        self.step = self.step or step
        return self

    def __str__(self) -> str:
        details = [
            f"{key}={value}"
            for key, value in (
                ("workspace", self.workspace_id),
                ("namespace", self.namespace),
                ("step", self.step),
            )
            if value
        ]
        if not details:
            return self.message
        return f"{self.message} ({', '.join(details)})"


class KubernetesInfrastructureError(InfrastructureError):
    """Exception for Kubernetes API operation failures"""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        resource: str | None = None,
        api_exception: ApiException | None = None,
    ) -> None:
        super().__init__(message, operation, resource)
        self.api_exception = api_exception
        self.status_code = api_exception.status if api_exception else None

    @property
    def is_forbidden(self) -> bool:
        return self.status_code == 403

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


def _resource_id(args: tuple[Any, ...], kwargs: dict[str, Any]) -> str:
    # Common pattern: first string arg after self is the resource identifier
    if "name" in kwargs:
        return str(kwargs["name"])
    if "namespace" in kwargs:
        return str(kwargs["namespace"])
    for arg in args[1:]:
        if isinstance(arg, str):
            return arg
        metadata = getattr(arg, "metadata", None)
        if metadata is not None and getattr(metadata, "name", None):
            return str(metadata.name)
    return "unknown"


def handle_kubernetes_errors(operation: str, resource_type: str) -> Callable[[F], F]:
    """
    Decorator to handle Kubernetes API exceptions with proper logging and error conversion.

    Args:
        operation: Description of the operation (e.g., "creating")
        resource_type: Type of Kubernetes resource (e.g., "namespace", "role")
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return func(*args, **kwargs)
            except ProvisionerError:
                raise
            except ApiException as e:
                resource_id = _resource_id(args, kwargs)
                error_msg = (
                    f"Kubernetes API error while {operation} {resource_type} '{resource_id}'"
                )

                # Log with appropriate level based on status code
                if e.status == 404:
                    logger.info("%s: Resource not found (404)", error_msg)
                elif e.status in (400, 401, 403, 409):
                    logger.warning("%s: Client error (%s): %s", error_msg, e.status, e.reason)
                else:
                    logger.error("%s: Server error (%s): %s", error_msg, e.status, e.reason)
                    if e.body:
                        logger.error("Error details: %s", e.body)

                raise KubernetesInfrastructureError(
                    message=f"Failed {operation} {resource_type} '{resource_id}': {e.reason}",
                    operation=operation,
                    resource=f"{resource_type}:{resource_id}",
                    api_exception=e,
                ) from e
            except Exception as e:
                resource_id = _resource_id(args, kwargs)
                logger.exception(
                    "Unexpected error while %s %s '%s': %s",
                    operation,
                    resource_type,
                    resource_id,
                    e,
                )
                raise InfrastructureError(
                    message=(
                        f"Failed {operation} {resource_type} '{resource_id}' "
                        "due to unexpected error"
                    ),
                    operation=operation,
                    resource=f"{resource_type}:{resource_id}",
                ) from e

        return wrapper  # type: ignore[return-value]

    return decorator


@contextmanager
def provisioning_step(
    step: str, workspace_id: str | None = None, namespace: str | None = None
) -> Iterator[None]:
    """Stamp the failing provisioning step onto any error escaping the block."""
    try:
        yield
    except InfrastructureError as e:
        raise e.with_context(workspace_id=workspace_id, namespace=namespace, step=step)
    except ProvisionerError:
        raise
    except ApiException as e:
        raise KubernetesInfrastructureError(
            message=f"Kubernetes API error during {step}: {e.reason}",
            operation=step,
            api_exception=e,
        ).with_context(workspace_id=workspace_id, namespace=namespace, step=step) from e
    except Exception as e:
        logger.exception("Unexpected error during %s in namespace '%s'", step, namespace)
        raise InfrastructureError(
            message=f"Unexpected error during {step}: {e}",
            operation=step,
            workspace_id=workspace_id,
            namespace=namespace,
            step=step,
        ) from e


def convert_to_http_exception(error: Exception, default_status_code: int = 500) -> HTTPException:
    """
    Convert domain exceptions to appropriate HTTP exceptions for FastAPI.

    Args:
        error: The exception to convert
        default_status_code: Default HTTP status code if no specific mapping exists
    """
    if isinstance(error, HTTPException):
        return error

    if isinstance(error, NamespaceValidationError):
        return HTTPException(status_code=400, detail=error.message)

    if isinstance(error, KubernetesInfrastructureError):
        if error.status_code == 404:
            return HTTPException(status_code=404, detail=f"Resource not found: {error.message}")
        if error.status_code in (401, 403):
            return HTTPException(status_code=error.status_code, detail=error.message)
        return HTTPException(status_code=500, detail=f"Internal server error: {error}")

    if isinstance(error, ProvisionerError):
        return HTTPException(status_code=default_status_code, detail=f"Operation failed: {error}")

    # Generic exception
    logger.error("Unhandled exception: %s", error, exc_info=True)
    return HTTPException(status_code=default_status_code, detail="Internal server error occurred")


def log_operation_start(operation: str, resource_type: str, resource_id: str) -> None:
    """Log the start of a significant operation"""
    logger.info("Starting %s for %s '%s'", operation, resource_type, resource_id)


def log_operation_success(operation: str, resource_type: str, resource_id: str) -> None:
    """Log successful completion of an operation"""
    logger.info("Successfully completed %s for %s '%s'", operation, resource_type, resource_id)
