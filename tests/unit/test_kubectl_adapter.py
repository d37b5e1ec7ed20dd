"""Tests for the kubectl orchestrator adapter."""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from deploy_bot.adapters.orchestrator.kubectl import KubectlAdapter
from deploy_bot.config.schema import DeploymentConfig
from deploy_bot.utils.safe_subprocess import CommandResult, CommandTimeoutError
from deploy_bot.utils.security import ValidationError


@pytest.fixture
def mock_kubectl() -> MagicMock:
    """Create a mock SafeKubectl instance."""
    return MagicMock()


@pytest.fixture
def adapter(mock_kubectl: MagicMock) -> Iterator[KubectlAdapter]:
    """Create an adapter with kubectl mocked out."""
    config = DeploymentConfig(
        image_prefix="myimage",
        namespace="production",
        deployment="web",
        command_timeout=120,
    )
    with patch(
        "deploy_bot.adapters.orchestrator.kubectl.SafeKubectl", return_value=mock_kubectl
    ) as kubectl_class:
        yield KubectlAdapter(config)
    kubectl_class.assert_called_once_with(kubectl_path=None, default_timeout=120)


class TestKubectlAdapter:
    """Test delegation and error conversion."""

    async def test_list_workloads(self, adapter: KubectlAdapter, mock_kubectl: MagicMock) -> None:
        """Test that pod listing is delegated with the namespace."""
        expected = CommandResult(stdout="NAME\n", stderr="", return_code=0, command=["kubectl"])
        mock_kubectl.get_pods = AsyncMock(return_value=expected)

        result = await adapter.list_workloads("kube-system")

        mock_kubectl.get_pods.assert_awaited_once_with("kube-system")
        assert result is expected

    async def test_kubectl_failure_returned(
        self, adapter: KubectlAdapter, mock_kubectl: MagicMock
    ) -> None:
        """Test that a non-zero exit is passed through unchanged."""
        failed = CommandResult(
            stdout='Error from server (NotFound): deployments.apps "web" not found\n',
            stderr="",
            return_code=1,
            command=["kubectl"],
        )
        mock_kubectl.set_image = AsyncMock(return_value=failed)

        result = await adapter.set_image("production", "web", "myimage:abc")

        mock_kubectl.set_image.assert_awaited_once_with("production", "web", "myimage:abc")
        assert result is failed

    async def test_validation_error_becomes_failed_result(
        self, adapter: KubectlAdapter, mock_kubectl: MagicMock
    ) -> None:
        """Test that rejected arguments are reported as a failure."""
        mock_kubectl.get_pods = AsyncMock(side_effect=ValidationError("Invalid namespace name: A B"))

        result = await adapter.list_workloads("A B")

        assert result.success is False
        assert result.return_code == -1
        assert result.output == "Invalid namespace name: A B"

    async def test_timeout_becomes_failed_result(
        self, adapter: KubectlAdapter, mock_kubectl: MagicMock
    ) -> None:
        """Test that a timed-out rollout is reported as a failure."""
        mock_kubectl.rollout_status = AsyncMock(
            side_effect=CommandTimeoutError("Command timed out after 120s")
        )

        result = await adapter.wait_for_rollout("production", "web")

        mock_kubectl.rollout_status.assert_awaited_once_with("production", "web")
        assert result.success is False
        assert "timed out" in result.output
