"""
Tests for the material category hierarchy.

Validates:
- Materialized path and level for roots and children
- Reparenting moves the whole subtree and refuses cycles
- Removal is refused while children or materials remain
- Tree, ancestor and search queries
"""

from uuid import uuid4

import pytest

from procurement_kernel.exceptions import (
    CategoryInUseError,
    CircularReferenceError,
    EntityNotFoundError,
    ValidationError,
)
from procurement_modules.categories import CategoryArena


@pytest.fixture
def create_category(category_service, test_actor_id):
    def _create(code, name_zh=None, parent=None, **kwargs):
        return category_service.create(
            test_actor_id,
            code=code,
            name_zh=name_zh or code,
            parent_id=parent.id if parent is not None else None,
            **kwargs,
        )
    return _create


@pytest.fixture
def electronics_tree(create_category):
    """ELEC -> IC -> MCU."""
    elec = create_category("elec", "电子元器件")
    ic = create_category("ic", "集成电路", parent=elec)
    mcu = create_category("mcu", "单片机", parent=ic)
    return elec, ic, mcu


class TestCategoryCreate:

    def test_root_category(self, create_category):
        root = create_category("elec", "电子元器件", name_en="Electronics")

        assert root.code == "ELEC"
        assert root.level == 0
        assert root.path == "/"
        assert root.full_path == "/ELEC"
        assert root.is_active is True

    def test_child_paths(self, electronics_tree):
        _, ic, mcu = electronics_tree

        assert (ic.level, ic.path) == (1, "/ELEC/")
        assert (mcu.level, mcu.path) == (2, "/ELEC/IC/")
        assert mcu.full_path == "/ELEC/IC/MCU"

    def test_duplicate_code(self, create_category):
        create_category("ELEC")

        with pytest.raises(ValidationError, match="already exists"):
            create_category("elec")

    def test_blank_name(self, category_service, test_actor_id):
        with pytest.raises(ValidationError):
            category_service.create(test_actor_id, code="X", name_zh=" ")

    def test_unknown_parent(self, category_service, test_actor_id):
        with pytest.raises(EntityNotFoundError, match="Parent category not found"):
            category_service.create(test_actor_id, code="X", name_zh="x", parent_id=uuid4())


class TestCategoryReparent:

    def test_subtree_follows_the_move(
        self, category_service, create_category, electronics_tree, test_actor_id,
    ):
        _, ic, mcu = electronics_tree
        parts = create_category("parts", "零部件")

        moved = category_service.update(ic.id, test_actor_id, parent_id=parts.id)

        assert (moved.level, moved.path) == (1, "/PARTS/")
        child = category_service.get(mcu.id)
        assert (child.level, child.path) == (2, "/PARTS/IC/")

    def test_move_to_root(self, category_service, electronics_tree, test_actor_id):
        _, ic, mcu = electronics_tree

        category_service.update(ic.id, test_actor_id, parent_id=None)

        assert category_service.get(ic.id).path == "/"
        assert category_service.get(mcu.id).path == "/IC/"
        assert category_service.get(mcu.id).level == 1

    def test_under_itself(self, category_service, electronics_tree, test_actor_id):
        elec, _, _ = electronics_tree

        with pytest.raises(CircularReferenceError):
            category_service.update(elec.id, test_actor_id, parent_id=elec.id)

    def test_under_a_descendant(self, category_service, electronics_tree, test_actor_id):
        elec, _, mcu = electronics_tree

        with pytest.raises(CircularReferenceError, match="circular reference"):
            category_service.update(elec.id, test_actor_id, parent_id=mcu.id)

        assert category_service.get(elec.id).path == "/"


class TestCategoryDelete:

    def test_refused_with_children(self, category_service, electronics_tree, test_actor_id):
        elec, _, _ = electronics_tree

        with pytest.raises(CategoryInUseError, match="with children"):
            category_service.delete(elec.id, test_actor_id)

    def test_refused_with_materials(
        self, category_service, create_category, create_material, test_actor_id,
    ):
        leaf = create_category("bolts")
        create_material("螺栓", category_id=leaf.id)

        with pytest.raises(CategoryInUseError, match="1 material"):
            category_service.delete(leaf.id, test_actor_id)

    def test_leaf_is_removed(self, category_service, electronics_tree, test_actor_id):
        _, _, mcu = electronics_tree

        category_service.delete(mcu.id, test_actor_id)

        with pytest.raises(EntityNotFoundError):
            category_service.get(mcu.id)


class TestCategoryQueries:

    def test_children(self, category_service, electronics_tree):
        elec, ic, mcu = electronics_tree

        assert [c.id for c in category_service.children(elec.id)] == [ic.id]
        assert {c.id for c in category_service.children(elec.id, recursive=True)} == {ic.id, mcu.id}

    def test_ancestors_root_first(self, category_service, electronics_tree):
        elec, ic, mcu = electronics_tree

        assert [c.id for c in category_service.ancestors(mcu.id)] == [elec.id, ic.id]
        assert category_service.ancestors(elec.id) == []

    def test_is_ancestor_of(self, category_service, electronics_tree):
        elec, _, mcu = electronics_tree

        assert category_service.is_ancestor_of(elec.id, mcu.id)
        assert not category_service.is_ancestor_of(mcu.id, elec.id)

    def test_tree(self, category_service, create_category, electronics_tree):
        elec, ic, mcu = electronics_tree
        create_category("pack", "包装")

        roots = category_service.tree()

        assert [n.category.code for n in roots] == ["ELEC", "PACK"]
        assert roots[0].children[0].category.id == ic.id
        assert roots[0].children[0].children[0].category.id == mcu.id

    def test_tree_hides_inactive(self, category_service, electronics_tree, test_actor_id):
        _, ic, _ = electronics_tree
        category_service.deactivate(ic.id, test_actor_id)

        roots = category_service.tree()

        assert roots[0].children == ()

    def test_search(self, category_service, electronics_tree):
        found = category_service.search("集成")

        assert [c.code for c in found] == ["IC"]

    def test_statistics(self, category_service, electronics_tree):
        stats = category_service.statistics()

        assert stats.total_categories == 3
        assert stats.active_categories == 3
        assert stats.max_level == 2


class TestCategoryArena:

    def test_orphans_are_roots(self, electronics_tree):
        _, ic, mcu = electronics_tree

        arena = CategoryArena([ic, mcu])

        assert [n.category.id for n in arena.tree()] == [ic.id]
        assert arena.ancestors(mcu.id) == (ic,)
        assert arena.descendants(ic.id) == (mcu,)
