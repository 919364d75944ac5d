"""Tests for the field-merge engine and the index-keyed list reconciler."""

from typing import ClassVar

import pytest
from pydantic import BaseModel, Field

from iaas_service.errors import SchemaMismatchError
from iaas_service.merge import merge, merge_by_key, merge_exclusions, merge_recursions


class Limits(BaseModel):
    cpu: int = 1
    memory: int = 1024


class LimitsPatch(BaseModel):
    cpu: int | None = None
    memory: int | None = None


class Target(BaseModel):
    id: int = 0
    name: str = "base"
    count: int = 5
    enabled: bool = True
    tags: list[str] = Field(default_factory=lambda: ["a", "b"])
    limits: Limits = Field(default_factory=Limits)
    optional_limits: Limits | None = None


class Patch(BaseModel):
    merge_exclude: ClassVar[frozenset[str]] = frozenset({"id"})
    merge_recursive: ClassVar[frozenset[str]] = frozenset({"limits", "optional_limits"})

    id: int = 99
    name: str | None = None
    count: int | None = None
    enabled: bool | None = None
    tags: list[str] | None = None
    limits: LimitsPatch | None = None
    optional_limits: LimitsPatch | None = None


class WholePatch(BaseModel):
    limits: Limits | None = None


class BrokenPatch(BaseModel):
    name: str | None = None
    unknown: str | None = None


class Entry(BaseModel):
    index: int = 0
    switch_id: int = 0
    address: str = ""


class EntryPatch(BaseModel):
    index: int
    switch_id: int | None = None
    address: str | None = None


class TestMerge:
    """Tests for merge()."""

    def test_absent_fields_keep_base_values(self) -> None:
        """Test that None-valued patch fields leave the base alone."""
        base = Target()
        merge(Patch(), base)

        assert base == Target()

    def test_present_fields_overwrite(self) -> None:
        """Test that present patch fields replace base values."""
        base = merge(Patch(name="new", count=7), Target())

        assert base.name == "new"
        assert base.count == 7
        assert base.enabled is True

    def test_zero_values_are_updates(self) -> None:
        """Test that "", 0, False and [] are written, not skipped."""
        base = merge(Patch(name="", count=0, enabled=False, tags=[]), Target())

        assert base.name == ""
        assert base.count == 0
        assert base.enabled is False
        assert base.tags == []

    def test_excluded_fields_are_skipped(self) -> None:
        """Test that merge_exclude fields never reach the base."""
        base = merge(Patch(id=42, name="x"), Target(id=7))

        assert base.id == 7
        assert base.name == "x"

    def test_returns_same_base_instance(self) -> None:
        """Test that the base is mutated in place and returned."""
        base = Target()
        assert merge(Patch(name="x"), base) is base

    def test_values_are_deep_copied(self) -> None:
        """Test that later changes to the patch do not leak into the base."""
        patch = Patch(tags=["x"])
        base = merge(patch, Target())
        patch.tags.append("y")

        assert base.tags == ["x"]

    def test_missing_base_field_raises(self) -> None:
        """Test that a patch field with no counterpart raises SchemaMismatchError."""
        with pytest.raises(SchemaMismatchError) as exc_info:
            merge(BrokenPatch(name="x"), Target())

        assert exc_info.value.field == "unknown"
        assert exc_info.value.patch_type == "BrokenPatch"
        assert exc_info.value.base_type == "Target"

    def test_missing_base_field_raises_when_absent(self) -> None:
        """Test that the mismatch is reported even for a no-op patch."""
        with pytest.raises(SchemaMismatchError):
            merge(BrokenPatch(), Target())

    def test_recursive_fields_merge_nested(self) -> None:
        """Test that merge_recursive fields keep unset nested values."""
        base = merge(Patch(limits=LimitsPatch(cpu=4)), Target(limits=Limits(cpu=1, memory=2048)))

        assert base.limits.cpu == 4
        assert base.limits.memory == 2048

    def test_recursive_field_creates_default_target(self) -> None:
        """Test that a None nested base value is started from its defaults."""
        base = merge(Patch(optional_limits=LimitsPatch(memory=512)), Target())

        assert base.optional_limits == Limits(cpu=1, memory=512)

    def test_non_recursive_model_replaces_whole(self) -> None:
        """Test that nested models outside merge_recursive replace the base value."""
        base = merge(WholePatch(limits=Limits(cpu=8)), Target(limits=Limits(cpu=1, memory=4096)))

        assert base.limits == Limits(cpu=8, memory=1024)

    def test_class_declarations(self) -> None:
        """Test reading the per-class merge declarations."""
        assert merge_exclusions(Patch) == frozenset({"id"})
        assert merge_recursions(Patch) == frozenset({"limits", "optional_limits"})
        assert merge_exclusions(WholePatch) == frozenset()


class TestMergeByKey:
    """Tests for merge_by_key()."""

    @pytest.fixture
    def baseline(self) -> list[Entry]:
        return [
            Entry(index=1, switch_id=11, address="192.0.2.1"),
            Entry(index=2, switch_id=22, address="192.0.2.2"),
            Entry(index=3, switch_id=33, address="192.0.2.3"),
        ]

    def test_unlisted_entries_are_dropped(self, baseline: list[Entry]) -> None:
        """Test that only patched keys survive."""
        merged = merge_by_key(baseline, [EntryPatch(index=2, address="198.51.100.2")], key="index", factory=Entry)

        assert merged == [Entry(index=2, switch_id=22, address="198.51.100.2")]

    def test_matches_by_key_not_position(self, baseline: list[Entry]) -> None:
        """Test that entries are matched by key and emitted in patch order."""
        merged = merge_by_key(
            baseline,
            [EntryPatch(index=3), EntryPatch(index=1, switch_id=99)],
            key="index",
            factory=Entry,
        )

        assert [e.index for e in merged] == [3, 1]
        assert merged[0].switch_id == 33
        assert merged[1].switch_id == 99
        assert merged[1].address == "192.0.2.1"

    def test_new_key_starts_from_factory(self, baseline: list[Entry]) -> None:
        """Test that a key absent from the baseline gets factory defaults."""
        merged = merge_by_key(baseline, [EntryPatch(index=5, switch_id=55)], key="index", factory=Entry)

        assert merged == [Entry(index=5, switch_id=55, address="")]

    def test_baseline_not_mutated(self, baseline: list[Entry]) -> None:
        """Test that the baseline entries are copied before merging."""
        merge_by_key(baseline, [EntryPatch(index=1, address="changed")], key="index", factory=Entry)

        assert baseline[0].address == "192.0.2.1"

    def test_empty_patch_list_drops_everything(self, baseline: list[Entry]) -> None:
        """Test that an empty patch list yields an empty result."""
        assert merge_by_key(baseline, [], key="index", factory=Entry) == []
