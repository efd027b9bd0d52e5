"""Tests for namespace name grammar and placeholder evaluation."""

import pytest

from nimbletools_namespace_provisioner.models import ResolutionContext
from nimbletools_namespace_provisioner.namespace.naming import (
    evaluate_annotations,
    evaluate_placeholders,
    generate_suffix,
    is_managed_namespace,
    is_valid_namespace_name,
    normalize_namespace_name,
    with_suffix,
)


class TestIsValidNamespaceName:
    @pytest.mark.parametrize("name", ["che-alice", "a", "user1-che", "a" * 63])
    def test_valid(self, name):
        """Test names satisfying the namespace grammar."""
        assert is_valid_namespace_name(name)

    @pytest.mark.parametrize(
        "name",
        [
            "",
            None,
            "Alice",
            "-alice",
            "alice-",
            "al_ice",
            "a" * 64,
            "kube-alice",
            "che.alice",
            "alice\n",
            "che-alice\n",
        ],
    )
    def test_invalid(self, name):
        """Test names violating the namespace grammar."""
        assert not is_valid_namespace_name(name)


class TestNormalizeNamespaceName:
    def test_replaces_invalid_characters(self):
        """Test invalid characters are replaced with dashes."""
        assert normalize_namespace_name("Alice.Smith@Example") == "alice-smith-example"

    def test_collapses_and_strips_dashes(self):
        """Collapses and strips dashes."""
        assert normalize_namespace_name("--a__b--") == "a-b"

    def test_reserved_prefix_is_escaped(self):
        """Reserved prefix is escaped."""
        assert normalize_namespace_name("kube-system") == "che-kube-system"

    def test_truncates_without_trailing_dash(self):
        """Truncates without trailing dash."""
        name = normalize_namespace_name("a" * 62 + "-b")
        assert len(name) <= 63
        assert not name.endswith("-")
        assert is_valid_namespace_name(name)

    def test_nothing_usable_left(self):
        """Test a name without usable characters normalizes to empty."""
        assert normalize_namespace_name("___") == ""


class TestSuffix:
    def test_generated_suffix_alphabet(self):
        """Test the generated suffix length and alphabet."""
        suffix = generate_suffix()
        assert len(suffix) == 6
        assert suffix.isalnum()
        assert suffix == suffix.lower()

    def test_suffixed_name_stays_within_limit(self):
        """Suffixed name stays within limit."""
        name = with_suffix("a" * 63, "abc123")
        assert name.endswith("-abc123")
        assert len(name) <= 63
        assert is_valid_namespace_name(name)


class TestPlaceholders:
    def test_evaluate_username_and_userid(self):
        """Evaluate username and userid."""
        ctx = ResolutionContext(user_id="id-1", user_name="alice")
        assert evaluate_placeholders("<username>-<userid>", ctx) == "alice-id-1"

    def test_template_without_placeholders_is_unchanged(self):
        """Template without placeholders is unchanged."""
        ctx = ResolutionContext(user_id="id-1", user_name="alice")
        assert evaluate_placeholders("static", ctx) == "static"

    def test_evaluate_annotations(self):
        """Test placeholders in annotation values are evaluated."""
        ctx = ResolutionContext(user_id="id-1", user_name="alice")
        annotations = {"owner": "<username>", "fixed": "value"}
        assert evaluate_annotations(annotations, ctx) == {"owner": "alice", "fixed": "value"}


class TestIsManagedNamespace:
    def test_namespace_embedding_workspace_id(self):
        """Namespace embedding workspace id."""
        assert is_managed_namespace("workspace1234-abcd", "workspace1234")

    def test_shared_namespace(self):
        """Test a namespace without the workspace id is not managed."""
        assert not is_managed_namespace("che-alice", "workspace1234")

    @pytest.mark.parametrize("name,workspace_id", [("", "ws"), (None, "ws"), ("ns", "")])
    def test_empty_values(self, name, workspace_id):
        """Test empty names or workspace ids are never managed."""
        assert not is_managed_namespace(name, workspace_id)
