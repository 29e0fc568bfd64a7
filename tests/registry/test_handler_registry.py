"""Tests for HandlerRegistry — registration, lookups and thread safety.

Verifies that failed writes leave the registry untouched and that
concurrent registration and lookup never corrupt state.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed

import pytest

from skillweave.core.errors import (
    DuplicateIdError,
    HandlerNotFoundError,
    InvalidDescriptorError,
    KindChangeError,
)
from skillweave.registry.descriptor import HandlerKind
from skillweave.registry.handler_registry import (
    HandlerRegistry,
    get_default_registry,
    reset_default_registry,
)


class TestRegister:
    def test_register_and_lookup(self, registry, make_descriptor):
        descriptor = make_descriptor("adr-drafter", "adr", "drafting")
        registry.register(descriptor)
        assert registry.lookup_by_id("adr-drafter") is descriptor
        assert "adr-drafter" in registry
        assert len(registry) == 1

    def test_duplicate_id_leaves_registry_unchanged(self, registry, make_descriptor):
        original = make_descriptor("a", "x")
        registry.register(original)
        with pytest.raises(DuplicateIdError):
            registry.register(make_descriptor("a", "y"))
        assert registry.lookup_by_id("a") is original
        assert registry.lookup_by_capability("y") == ()
        assert len(registry) == 1

    def test_invalid_descriptor_rejected(self, registry, make_descriptor):
        with pytest.raises(InvalidDescriptorError) as exc_info:
            registry.register(make_descriptor("a", "x", input_schema={"type": "blob"}))
        assert exc_info.value.handler_id == "a"
        assert len(registry) == 0

    def test_register_all_stops_at_first_failure(self, registry, make_descriptor):
        with pytest.raises(DuplicateIdError):
            registry.register_all(
                [make_descriptor("a", "x"), make_descriptor("a", "x"), make_descriptor("b", "x")]
            )
        assert registry.ids() == ["a"]

    def test_constructor_registers(self, make_descriptor):
        registry = HandlerRegistry([make_descriptor("a", "x"), make_descriptor("b", "y")])
        assert registry.ids() == ["a", "b"]


class TestLookups:
    @pytest.fixture
    def populated(self, registry, make_descriptor):
        registry.register(make_descriptor("drafter", "adr", "drafting", target_processes={"review"}))
        registry.register(make_descriptor("reviewer", "adr", "review", kind="agent"))
        registry.register(make_descriptor("linter", "lint", target_processes={"review"}))
        return registry

    def test_unknown_id(self, registry):
        with pytest.raises(HandlerNotFoundError):
            registry.lookup_by_id("missing")
        assert registry.get("missing") is None

    def test_by_capability_in_registration_order(self, populated):
        assert [d.id for d in populated.lookup_by_capability("adr")] == ["drafter", "reviewer"]
        assert populated.lookup_by_capability("unknown") == ()

    def test_by_capabilities_requires_all_tags(self, populated):
        assert [d.id for d in populated.lookup_by_capabilities(["adr", "review"])] == ["reviewer"]

    def test_by_process(self, populated):
        assert [d.id for d in populated.lookup_by_process("review")] == ["drafter", "linter"]

    def test_descriptors_by_kind(self, populated):
        assert [d.id for d in populated.descriptors(HandlerKind.AGENT)] == ["reviewer"]
        assert len(populated.descriptors()) == 3

    def test_tags_and_stats(self, populated):
        assert populated.tags() == ["adr", "drafting", "lint", "review"]
        assert populated.stats() == {
            "total": 3,
            "by_kind": {"skill": 2, "agent": 1},
            "tags": 4,
            "shared_tags": ["adr"],
        }

    def test_iteration(self, populated):
        assert [d.id for d in populated] == ["drafter", "reviewer", "linter"]


class TestReplaceAndUnregister:
    def test_replace_keeps_position(self, registry, make_descriptor):
        registry.register(make_descriptor("a", "x"))
        registry.register(make_descriptor("b", "x"))
        previous = registry.replace(make_descriptor("a", "x", "y", name="A v2"))
        assert previous.name == ""
        assert registry.lookup_by_id("a").name == "A v2"
        assert [d.id for d in registry.lookup_by_capability("x")] == ["a", "b"]
        assert [d.id for d in registry.lookup_by_capability("y")] == ["a"]

    def test_replace_cannot_change_kind(self, registry, make_descriptor):
        registry.register(make_descriptor("a", "x"))
        with pytest.raises(KindChangeError):
            registry.replace(make_descriptor("a", "x", kind="agent"))
        assert registry.lookup_by_id("a").kind is HandlerKind.SKILL

    def test_replace_unknown(self, registry, make_descriptor):
        with pytest.raises(HandlerNotFoundError):
            registry.replace(make_descriptor("a", "x"))

    def test_unregister_is_idempotent(self, registry, make_descriptor):
        registry.register(make_descriptor("a", "x"))
        assert registry.unregister("a") is True
        assert registry.unregister("a") is False
        assert registry.lookup_by_capability("x") == ()

    def test_clear(self, registry, make_descriptor):
        registry.register(make_descriptor("a", "x"))
        registry.clear()
        assert len(registry) == 0


class TestDefaultRegistry:
    def test_singleton_and_reset(self, make_descriptor):
        first = get_default_registry()
        first.register(make_descriptor("a", "x"))
        assert get_default_registry() is first
        reset_default_registry()
        assert len(get_default_registry()) == 0


@pytest.mark.slow
class TestThreadSafety:
    def test_concurrent_registration(self, registry, make_descriptor):
        """Multiple threads registering different handlers simultaneously."""
        errors = []

        def register(i: int):
            try:
                registry.register(make_descriptor(f"handler_{i}", "shared", f"tag_{i}"))
            except Exception as e:
                errors.append(e)

        with ThreadPoolExecutor(max_workers=10) as pool:
            futures = [pool.submit(register, i) for i in range(100)]
            for f in as_completed(futures):
                f.result()

        assert errors == []
        assert len(registry) == 100
        assert len(registry.lookup_by_capability("shared")) == 100

    def test_concurrent_duplicates_register_once(self, registry, make_descriptor):
        outcomes: list[str] = []
        lock = threading.Lock()

        def register():
            try:
                registry.register(make_descriptor("same", "x"))
                result = "ok"
            except DuplicateIdError:
                result = "duplicate"
            with lock:
                outcomes.append(result)

        with ThreadPoolExecutor(max_workers=8) as pool:
            for f in [pool.submit(register) for _ in range(20)]:
                f.result()

        assert outcomes.count("ok") == 1
        assert outcomes.count("duplicate") == 19

    def test_readers_see_consistent_snapshots(self, registry, make_descriptor):
        """Every descriptor found by tag is also found by id."""
        for i in range(20):
            registry.register(make_descriptor(f"init_{i}", "shared"))
        errors = []

        def writer(i: int):
            try:
                registry.register(make_descriptor(f"new_{i}", "shared"))
                registry.unregister(f"init_{i % 20}")
            except Exception as e:
                errors.append(e)

        def reader():
            try:
                for descriptor in registry.lookup_by_capability("shared"):
                    assert descriptor.has_capabilities(["shared"])
                registry.stats()
            except Exception as e:
                errors.append(e)

        with ThreadPoolExecutor(max_workers=10) as pool:
            futures = [pool.submit(writer, i) for i in range(40)]
            futures += [pool.submit(reader) for _ in range(200)]
            for f in as_completed(futures):
                f.result()

        assert errors == []
        assert len(registry) == 40
