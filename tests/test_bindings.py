"""Tests for binding variants, type keys and last-wins finalization."""

from typing import Annotated

import pytest

from bindwire.bindings import (
    ClassBinding,
    InstanceBinding,
    ProviderBinding,
    SingletonBinding,
    finalize_bindings,
)
from bindwire.exceptions import InvalidBindingError
from bindwire.type_key import Tag, TypeKey


class Storage:
    pass


class DiskStorage(Storage):
    pass


class MemoryStorage(Storage):
    pass


STORAGE = TypeKey.from_value(Storage)
DISK = TypeKey.from_value(DiskStorage)
MEMORY = TypeKey.from_value(MemoryStorage)


class TestTypeKey:
    def test_plain_type(self) -> None:
        key = TypeKey.from_value(Storage)

        assert key == TypeKey(Storage)
        assert key.tag is None
        assert str(key) == "Storage"

    def test_existing_key_is_returned_unchanged(self) -> None:
        key = TypeKey(Storage, Tag("primary"))

        assert TypeKey.from_value(key) is key

    def test_annotated_tag_becomes_part_of_key(self) -> None:
        key = TypeKey.from_value(Annotated[Storage, Tag("primary")])

        assert key == TypeKey(Storage, Tag("primary"))
        assert key != STORAGE
        assert str(key) == "Storage@primary"

    def test_annotated_without_tag_is_plain_key(self) -> None:
        assert TypeKey.from_value(Annotated[Storage, "doc"]) == STORAGE

    def test_keys_are_hashable(self) -> None:
        keys = {TypeKey.from_value(Storage), TypeKey(Storage), TypeKey(Storage, Tag("x"))}

        assert len(keys) == 2


class TestBindingVariants:
    def test_bindings_are_immutable(self) -> None:
        binding = ClassBinding(STORAGE, DISK)

        with pytest.raises(AttributeError):
            binding.to_key = MEMORY  # type: ignore[misc]

    def test_null_source_key_is_rejected(self) -> None:
        with pytest.raises(InvalidBindingError):
            InstanceBinding(None, object())  # type: ignore[arg-type]

    def test_non_callable_provider_is_rejected(self) -> None:
        with pytest.raises(InvalidBindingError, match="must be callable"):
            ProviderBinding(STORAGE, "not callable")  # type: ignore[arg-type]

    def test_singleton_defaults_to_lazy(self) -> None:
        assert SingletonBinding(STORAGE, DISK).is_eager is False

    def test_str_describes_binding(self) -> None:
        assert str(ClassBinding(STORAGE, DISK)) == "Storage -> DiskStorage"
        assert "eager singleton" in str(SingletonBinding(STORAGE, DISK, is_eager=True))


class TestFinalizeBindings:
    def test_last_binding_wins(self) -> None:
        table = finalize_bindings(
            [ClassBinding(STORAGE, DISK), ClassBinding(STORAGE, MEMORY)],
        )

        assert table == {STORAGE: ClassBinding(STORAGE, MEMORY)}

    def test_override_may_change_variant(self) -> None:
        instance = MemoryStorage()
        table = finalize_bindings(
            [SingletonBinding(STORAGE, DISK), InstanceBinding(STORAGE, instance)],
        )

        assert table[STORAGE] == InstanceBinding(STORAGE, instance)

    def test_table_is_ordered_by_surviving_registration(self) -> None:
        table = finalize_bindings(
            [
                SingletonBinding(DISK, DISK),
                SingletonBinding(MEMORY, MEMORY),
                ClassBinding(STORAGE, DISK),
                SingletonBinding(DISK, DISK, is_eager=True),
            ],
        )

        assert list(table) == [MEMORY, STORAGE, DISK]

    def test_empty(self) -> None:
        assert finalize_bindings([]) == {}
