"""Tests for error types and provider error classification."""

import pytest

from storyreel.errors import (
    AssetGenerationError,
    ContentPolicyError,
    ErrorKind,
    ProviderQuotaError,
    StoryReelError,
    classify_error,
    classify_message,
    user_message,
    wrap_provider_error,
)


class TestClassification:
    """Tests for substring-based classification."""

    @pytest.mark.parametrize(
        "message",
        [
            "Image generation blocked by content filters",
            "error code: content_policy_violation",
            "Your request was rejected as a result of our safety system",
        ],
    )
    def test_content_policy(self, message):
        """Test content-policy markers are recognized case-insensitively."""
        assert classify_message(message) == ErrorKind.CONTENT_POLICY
        assert classify_message(message.upper()) == ErrorKind.CONTENT_POLICY

    @pytest.mark.parametrize(
        "message",
        [
            "MiniMax API error: Insufficient balance. Please check your account credits.",
            "Invalid API key. Please verify the MiniMax API key.",
            "ElevenLabs API error: 401 Unauthorized",
            "429 Too Many Requests",
            "monthly quota exceeded",
        ],
    )
    def test_quota(self, message):
        """Test auth, balance and quota markers."""
        assert classify_message(message) == ErrorKind.QUOTA

    def test_generic(self):
        """Test anything else is generic."""
        assert classify_message("connection reset by peer") == ErrorKind.GENERIC

    def test_typed_errors_keep_their_kind(self):
        """Test typed errors classify by type, not message."""
        assert classify_error(ContentPolicyError("nope")) == ErrorKind.CONTENT_POLICY
        assert classify_error(ProviderQuotaError("nope")) == ErrorKind.QUOTA

    def test_user_messages(self):
        """Test every kind has remediation text."""
        for kind in ErrorKind:
            assert user_message(kind)


class TestWrapProviderError:
    """Tests for converting raw collaborator exceptions."""

    def test_content_policy(self):
        """Test content-policy failures become ContentPolicyError."""
        error = wrap_provider_error(RuntimeError("blocked by content filters"), "analysis")

        assert isinstance(error, ContentPolicyError)
        assert error.details == ["blocked by content filters"]

    def test_quota(self):
        """Test quota failures become ProviderQuotaError."""
        assert isinstance(wrap_provider_error(RuntimeError("402 Payment Required"), "assets"), ProviderQuotaError)

    def test_generic(self):
        """Test other failures name the stage."""
        error = wrap_provider_error(RuntimeError("boom"), "script")

        assert type(error) is StoryReelError
        assert error.message == "Failed to generate script: boom"

    def test_workflow_errors_pass_through(self):
        """Test typed workflow errors are returned unchanged."""
        original = AssetGenerationError("all failed", details=["Scene 1: x"])
        assert wrap_provider_error(original, "assets") is original

    def test_to_dict(self):
        """Test the serialized form carries code, message and details."""
        error = AssetGenerationError("all failed", details=["Scene 1: x"])

        assert error.to_dict() == {
            "code": "ASSET_GENERATION_FAILED",
            "message": "all failed",
            "details": ["Scene 1: x"],
        }
