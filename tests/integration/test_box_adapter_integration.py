"""Integration tests for adapters sharing one Box account."""

from __future__ import annotations

import pytest

from box_file_backend import BoxAdapter
from tests.fakes import FakeBoxClient


@pytest.fixture
def fake_client() -> FakeBoxClient:
    """Provide a shared fake Box client for integration tests."""
    return FakeBoxClient()


def test_adapters_observe_shared_state(fake_client: FakeBoxClient) -> None:
    """Changes made through one adapter are visible through another."""
    adapter_a = BoxAdapter({}, client=fake_client)
    adapter_b = BoxAdapter({}, client=fake_client)

    assert adapter_a.write("shared/data.txt", "hello")
    result = adapter_b.read("shared/data.txt")
    assert result
    assert result["contents"] == b"hello"
    assert adapter_b.has("shared")

    assert adapter_b.update("shared/data.txt", "hello world")
    result = adapter_a.read("shared/data.txt")
    assert result
    assert result["contents"] == b"hello world"

    assert adapter_b.write("shared/more/info.txt", "value")
    assert adapter_a.delete_dir("shared")

    assert adapter_b.has("shared/more/info.txt") is False
    assert adapter_b.has("shared") is False


def test_stale_cache_recovers_after_remote_delete(
    fake_client: FakeBoxClient,
) -> None:
    """Writes through a stale cached folder recreate it on the first call."""
    writer = BoxAdapter({}, client=fake_client)
    other = BoxAdapter({}, client=fake_client)

    assert writer.write("inbox/a.txt", b"a")
    assert other.read("inbox/a.txt")

    assert writer.delete_dir("inbox")

    # The other adapter still holds the deleted identifiers.
    assert other.write("inbox/b.txt", b"b")
    assert other.read("inbox/a.txt") is False
    assert fake_client.find("/inbox/b.txt") is not None
    assert writer.list_contents("inbox") == other.list_contents("inbox")


def test_reads_follow_folder_recreated_elsewhere(
    fake_client: FakeBoxClient,
) -> None:
    """Read-only calls find files under a folder another adapter recreated."""
    writer = BoxAdapter({}, client=fake_client)
    other = BoxAdapter({}, client=fake_client)

    assert writer.write("inbox/a.txt", b"a")
    assert other.read("inbox/a.txt")

    assert writer.delete_dir("inbox")
    assert writer.write("inbox/c.txt", b"c")

    result = other.read("inbox/c.txt")
    assert result
    assert result["contents"] == b"c"
    assert other.has("inbox/c.txt") is True
    assert other.has("inbox") is True
    listing = other.list_contents("inbox")
    assert listing
    assert [item["path"] for item in listing] == ["inbox/c.txt"]
    assert other.has("inbox/a.txt") is False


def test_listing_follows_folder_recreated_elsewhere(
    fake_client: FakeBoxClient,
) -> None:
    """Listing a folder replaced by another adapter succeeds on first try."""
    writer = BoxAdapter({}, client=fake_client)
    other = BoxAdapter({}, client=fake_client)

    assert writer.write("inbox/a.txt", b"a")
    assert other.list_contents("inbox")

    assert writer.delete_dir("inbox")
    assert writer.write("inbox/c.txt", b"c")

    listing = other.list_contents("inbox")
    assert listing
    assert [item["path"] for item in listing] == ["inbox/c.txt"]
    metadata = other.get_metadata("inbox/c.txt")
    assert metadata
    assert metadata["size"] == 1


def test_prefixed_adapters_are_isolated(fake_client: FakeBoxClient) -> None:
    """Adapters with different prefixes do not see each other's files."""
    tenant_a = BoxAdapter({"prefix": "tenants/a"}, client=fake_client)
    tenant_b = BoxAdapter({"prefix": "tenants/b"}, client=fake_client)
    root = BoxAdapter({}, client=fake_client)

    assert tenant_a.write("report.txt", b"a")
    assert tenant_b.write("report.txt", b"b")

    result_a = tenant_a.read("report.txt")
    result_b = tenant_b.read("report.txt")
    assert result_a
    assert result_b
    assert result_a["contents"] == b"a"
    assert result_b["contents"] == b"b"

    listing = root.list_contents("tenants")
    assert listing
    assert sorted(item["path"] for item in listing) == ["tenants/a", "tenants/b"]


def test_rename_then_copy_across_adapters(fake_client: FakeBoxClient) -> None:
    """Moves made by one adapter are found by another through listing."""
    adapter_a = BoxAdapter({}, client=fake_client)
    adapter_b = BoxAdapter({}, client=fake_client)

    assert adapter_a.write("drafts/plan.md", b"# plan")
    assert adapter_a.create_dir("final")
    assert adapter_a.rename("drafts/plan.md", "final/plan.md")

    assert adapter_b.copy("final/plan.md", "drafts")
    copied = adapter_a.read("drafts/plan.md")
    assert copied
    assert copied["contents"] == b"# plan"
