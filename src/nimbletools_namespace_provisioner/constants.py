"""
Constants shared across the namespace provisioner
"""

# Namespace name template placeholders
USERNAME_PLACEHOLDER = "<username>"
USERID_PLACEHOLDER = "<userid>"
REQUIRED_NAMESPACE_NAME_PLACEHOLDERS = (USERNAME_PLACEHOLDER, USERID_PLACEHOLDER)

# Kubernetes metadata.name limits for namespaces (RFC 1123 label)
METADATA_NAME_MAX_LENGTH = 63
RESERVED_NAMESPACE_PREFIX = "kube-"
NORMALIZED_NAMESPACE_PREFIX = "che-"
# Room left for a "-xxxxxx" collision suffix
SUFFIXED_NAME_BASE_LENGTH = 55
NAME_SUFFIX_LENGTH = 6

# User preference keys recording the resolved namespace and its template
WORKSPACE_INFRASTRUCTURE_NAMESPACE_ATTRIBUTE = "infrastructureNamespace"
NAMESPACE_TEMPLATE_ATTRIBUTE = "infrastructureNamespaceTemplate"

# NamespaceMeta attributes
DEFAULT_ATTRIBUTE = "default"
PHASE_ATTRIBUTE = "phase"
NAMESPACE_PHASE_ACTIVE = "Active"

# Workspace ServiceAccount role catalog
EXEC_ROLE_NAME = "exec"
VIEW_ROLE_NAME = "workspace-view"
METRICS_ROLE_NAME = "workspace-metrics"
SECRETS_ROLE_NAME = "workspace-secrets"
CONFIGMAPS_ROLE_NAME = "workspace-configmaps"

METRICS_API_GROUP = "metrics.k8s.io"
RBAC_API_GROUP = "rbac.authorization.k8s.io"
OPENSHIFT_AUTHORIZATION_GROUP = "authorization.openshift.io"

# Objects created inside workspace namespaces
CREDENTIALS_SECRET_NAME = "workspace-credentials-secret"
PREFERENCES_CONFIGMAP_NAME = "workspace-preferences-configmap"
GIT_USERDATA_CONFIGMAP_NAME = "workspace-userdata-gitconfig-configmap"
SSH_KEY_SECRET_NAME = "workspace-git-ssh-key"
DEV_WORKSPACE_SSH_SECRET_NAME = "git-ssh-key"
USER_PROFILE_SECRET_NAME = "user-profile"
USER_PREFERENCES_SECRET_NAME = "user-preferences"
MERGED_GIT_CREDENTIALS_SECRET_NAME = "devworkspace-merged-git-credentials"

# DevWorkspace operator mount contract
DEV_WORKSPACE_MOUNT_LABEL = "controller.devfile.io/mount-to-devworkspace"
DEV_WORKSPACE_WATCH_SECRET_LABEL = "controller.devfile.io/watch-secret"
DEV_WORKSPACE_WATCH_CONFIGMAP_LABEL = "controller.devfile.io/watch-configmap"
DEV_WORKSPACE_MOUNT_PATH_ANNOTATION = "controller.devfile.io/mount-path"
DEV_WORKSPACE_MOUNT_AS_ANNOTATION = "controller.devfile.io/mount-as"

# Personal access token secrets
PERSONAL_ACCESS_TOKEN_LABELS = {
    "app.kubernetes.io/part-of": "nimbletools.dev",
    "app.kubernetes.io/component": "scm-personal-access-token",
}
ANNOTATION_SCM_URL = "nimbletools.dev/scm-url"
ANNOTATION_SCM_PERSONAL_ACCESS_TOKEN_NAME = "nimbletools.dev/scm-personal-access-token-name"
OAUTH_2_PREFIX = "oauth2-"

# Labels stamped on objects owned by this service
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "nimbletools-namespace-provisioner"
