"""
Data models for the namespace provisioner
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ResolutionContext(BaseModel):
    """Identity and workspace tuple driving namespace name evaluation"""

    model_config = ConfigDict(frozen=True)

    workspace_id: str | None = Field(default=None, description="Workspace being started")
    user_id: str = Field(..., description="ID of the acting user")
    user_name: str = Field(..., description="Name of the acting user")


class RuntimeIdentity(BaseModel):
    """Identity of a workspace runtime and the namespace assigned to it"""

    model_config = ConfigDict(frozen=True)

    workspace_id: str | None = Field(default=None, description="Workspace ID")
    owner_id: str = Field(..., description="ID of the workspace owner")
    namespace: str = Field(..., description="Namespace assigned to the workspace")


class WorkspaceRef(BaseModel):
    """Minimal view of a stored workspace"""

    id: str = Field(..., description="Workspace ID")
    owner_id: str | None = Field(default=None, description="ID of the workspace owner")
    attributes: dict[str, str] = Field(default_factory=dict, description="Workspace attributes")


class NamespaceMeta(BaseModel):
    """Read-model projected from a live Namespace object"""

    name: str = Field(..., description="Namespace name")
    attributes: dict[str, str] = Field(default_factory=dict, description="Provenance attributes")


class User(BaseModel):
    """User record from the user directory"""

    id: str = Field(..., description="User ID")
    name: str = Field(..., description="User name")
    email: str = Field(default="", description="User email")


class SshPair(BaseModel):
    """SSH key pair from the key store"""

    name: str = Field(..., description="Key name, used as host for SSH config")
    public_key: str = Field(default="", description="Public key")
    private_key: str | None = Field(default=None, description="Private key")


class GitUserData(BaseModel):
    """Git identity reported by an SCM provider"""

    scm_username: str = Field(..., description="Username to use for git commits")
    scm_user_email: str = Field(..., description="Email to use for git commits")


class NamespaceMetaResponse(BaseModel):
    """Namespace description returned over HTTP"""

    name: str = Field(..., description="Namespace name")
    attributes: dict[str, str] = Field(default_factory=dict, description="Namespace attributes")

    @classmethod
    def from_meta(cls, meta: NamespaceMeta) -> "NamespaceMetaResponse":
        return cls(name=meta.name, attributes=dict(meta.attributes))


class HealthCheck(BaseModel):
    """Health check response"""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Service version")
    details: dict[str, Any] | None = Field(default=None, description="Extra details")
