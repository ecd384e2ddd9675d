"""
Screen Reducer -- Property Tests

Covers:
  - Idempotence of upsert and delete patches
  - Insert-as-move never duplicates
  - Auto-append: only newly added ids, in upsert order, only when unplaced
  - Dangling-safe set
  - Truncation of a 250-id set to the first 200
  - Index clamping (negative, NaN, inf, non-numeric, float)
  - Purity: prev is never modified
  - Randomized invariant preservation
"""

import copy
import json
import random

import pytest

from engine.kernel.reducer import apply_all, apply_patch, empty_screen, normalize_screen, replay
from engine.kernel.schema import LAYOUT_MAX, check_invariants


def comp(cid):
    return {"id": cid, "name": cid.title(), "html": f"<section>{cid}</section>"}


def screen_with(*ids):
    return {
        "components": {cid: {"name": cid.title(), "html": f"<section>{cid}</section>"} for cid in ids},
        "layout": list(ids),
    }


def snap_json(screen):
    return json.dumps(screen, sort_keys=True)


# ============================================================================
# 1. Idempotence
# ============================================================================


class TestIdempotence:
    def test_upsert_twice_equals_once(self):
        patch = {"upsert_components": [comp("hero"), comp("footer")]}
        once = apply_patch(screen_with("a"), patch)
        twice = apply_patch(once, patch)
        assert snap_json(once) == snap_json(twice)

    def test_delete_twice_equals_once(self):
        patch = {"delete_components": ["b"]}
        once = apply_patch(screen_with("a", "b", "c"), patch)
        twice = apply_patch(once, patch)
        assert once == twice

    def test_normalize_is_idempotent(self):
        messy = {
            "components": {"a": {"name": "A", "html": "x"}, "b": {"name": "B", "html": "y"}},
            "layout": ["a", "ghost", "a", "b", "b"],
        }
        once = normalize_screen(messy)
        assert once["layout"] == ["a", "b"]
        assert normalize_screen(once) == once


# ============================================================================
# 2. Insert-as-move
# ============================================================================


class TestInsertAsMove:
    @pytest.mark.parametrize("index", [0, 1, 2, 3, 9999])
    def test_insert_present_id_never_duplicates(self, index):
        result = apply_patch(
            screen_with("a", "b", "c"),
            {"layout_patch": [{"op": "insert", "component_id": "b", "index": index}]},
        )
        assert result["layout"].count("b") == 1
        assert sorted(result["layout"]) == ["a", "b", "c"]

    def test_insert_relocates(self):
        result = apply_patch(
            screen_with("a", "b", "c"),
            {"layout_patch": [{"op": "insert", "component_id": "c", "index": 0}]},
        )
        assert result["layout"] == ["c", "a", "b"]


# ============================================================================
# 3. Auto-append
# ============================================================================


class TestAutoAppend:
    def test_new_ids_appended_in_upsert_order(self):
        result = apply_patch(screen_with("a"), {"upsert_components": [comp("z"), comp("m")]})
        assert result["layout"] == ["a", "z", "m"]

    def test_updated_unplaced_component_is_not_appended(self):
        prev = screen_with("a", "b")
        prev["layout"] = ["a"]
        result = apply_patch(prev, {"upsert_components": [comp("b")]})
        assert result["layout"] == ["a"]

    def test_new_id_placed_by_op_is_not_appended_again(self):
        result = apply_patch(
            screen_with("a", "b"),
            {
                "upsert_components": [comp("new")],
                "layout_patch": [{"op": "insert", "component_id": "new", "index": 0}],
            },
        )
        assert result["layout"] == ["new", "a", "b"]

    def test_new_id_removed_by_op_is_appended(self):
        result = apply_patch(
            screen_with("a"),
            {
                "upsert_components": [comp("new")],
                "layout_patch": [{"op": "remove", "component_id": "new"}],
            },
        )
        assert result["layout"] == ["a", "new"]

    def test_new_then_deleted_is_not_appended(self):
        result = apply_patch(
            screen_with("a"),
            {"upsert_components": [comp("new")], "delete_components": ["new"]},
        )
        assert result["layout"] == ["a"]
        assert "new" not in result["components"]


# ============================================================================
# 4. Set
# ============================================================================


class TestSet:
    def test_set_drops_exactly_unknown_ids(self):
        result = apply_patch(
            screen_with("a", "b", "c"),
            {"layout_patch": [{"op": "set", "layout": ["c", "ghost", "a", "phantom"]}]},
        )
        assert result["layout"] == ["c", "a"]

    def test_set_duplicates_keep_first(self):
        result = apply_patch(
            screen_with("a", "b"),
            {"layout_patch": [{"op": "set", "layout": ["b", "a", "b"]}]},
        )
        assert result["layout"] == ["b", "a"]

    def test_set_250_truncates_to_first_200(self):
        ids = [f"c{i}" for i in range(250)]
        prev = {"components": {cid: {"name": cid, "html": "x"} for cid in ids}, "layout": []}
        result = apply_patch(prev, {"layout_patch": [{"op": "set", "layout": ids}]})
        assert len(result["layout"]) == LAYOUT_MAX
        assert result["layout"] == ids[:200]

    def test_auto_append_onto_full_layout_is_truncated(self):
        ids = [f"c{i}" for i in range(LAYOUT_MAX)]
        prev = {"components": {cid: {"name": cid, "html": "x"} for cid in ids}, "layout": list(ids)}
        result = apply_patch(prev, {"upsert_components": [comp("late")]})

        assert "late" in result["components"]
        assert result["layout"] == ids
        assert check_invariants(result) == []


# ============================================================================
# 5. Index clamping
# ============================================================================


class TestIndexClamping:
    @pytest.mark.parametrize("index", [-1, -500, float("nan"), float("inf"), float("-inf"), "2", None, True])
    def test_unusable_index_appends(self, index):
        result = apply_patch(
            screen_with("a", "b", "c"),
            {"layout_patch": [{"op": "insert", "component_id": "a", "index": index}]},
        )
        assert result["layout"] == ["b", "c", "a"]

    def test_missing_index_appends(self):
        result = apply_patch(
            screen_with("a", "b"),
            {"layout_patch": [{"op": "move", "component_id": "a"}]},
        )
        assert result["layout"] == ["b", "a"]

    def test_float_index_truncates(self):
        result = apply_patch(
            screen_with("a", "b", "c"),
            {"layout_patch": [{"op": "insert", "component_id": "c", "index": 1.7}]},
        )
        assert result["layout"] == ["a", "c", "b"]


# ============================================================================
# 6. Purity and totality
# ============================================================================


class TestPurity:
    def test_prev_not_mutated(self):
        prev = screen_with("a", "b", "c")
        prev["title"] = "T"
        before = copy.deepcopy(prev)
        apply_patch(
            prev,
            {
                "upsert_components": [comp("a"), comp("d")],
                "delete_components": ["b"],
                "layout_patch": [{"op": "set", "layout": ["d", "a"]}],
                "title": "New",
            },
        )
        assert prev == before

    def test_patch_not_mutated(self):
        patch = {"upsert_components": [comp("a")], "layout_patch": [{"op": "set", "layout": ["a", "x"]}]}
        before = copy.deepcopy(patch)
        apply_patch(empty_screen(), patch)
        assert patch == before

    @pytest.mark.parametrize(
        "patch",
        [
            {"upsert_components": "nope"},
            {"upsert_components": [None, 3, {"id": "Bad Id", "name": "x", "html": "y"}, {"id": "ok"}]},
            {"delete_components": [None, ["a"], 7]},
            {"layout_patch": [None, {"op": "insert"}, {"op": "set", "layout": "a"}, {"op": "remove"}]},
            {"layout_patch": [{"op": "set", "layout": [["a"], {"x": 1}, "a"]}]},
        ],
    )
    def test_malformed_patch_never_raises(self, patch):
        result = apply_patch(screen_with("a", "b"), patch)
        assert check_invariants(result) == []
        assert "ok" not in result["components"]

    def test_dirty_prev_is_repaired(self):
        prev = {
            "components": {"a": {"name": "A", "html": "x"}, "BAD KEY": {"name": "B", "html": "y"}},
            "layout": ["a", "a", "BAD KEY", "ghost"],
        }
        result = apply_patch(prev, {})
        assert result == {"components": {"a": {"name": "A", "html": "x"}}, "layout": ["a"]}


# ============================================================================
# 7. Replay determinism
# ============================================================================


class TestReplay:
    def test_replay_equals_incremental_fold(self):
        patches = [
            {"upsert_components": [comp("hero"), comp("cta")], "title": "Home"},
            {"layout_patch": [{"op": "move", "component_id": "cta", "to_index": 0}]},
            {"upsert_components": [comp("footer")]},
            {"delete_components": ["hero"]},
        ]
        incremental = empty_screen()
        for patch in patches:
            incremental = apply_patch(incremental, patch)
        assert replay(patches) == incremental
        assert apply_all(empty_screen(), patches) == incremental
        assert incremental["layout"] == ["cta", "footer"]


# ============================================================================
# 8. Randomized invariants
# ============================================================================

ID_POOL = [f"c{i}" for i in range(12)] + ["Bad", "", "x y"]


def random_patch(rng):
    upserts = [
        {"id": rng.choice(ID_POOL), "name": "N", "html": "<p>h</p>"}
        for _ in range(rng.randint(0, 4))
    ]
    deletes = [rng.choice(ID_POOL) for _ in range(rng.randint(0, 2))]
    ops = []
    for _ in range(rng.randint(0, 5)):
        kind = rng.choice(["insert", "move", "remove", "set"])
        if kind == "insert":
            ops.append({"op": "insert", "component_id": rng.choice(ID_POOL), "index": rng.randint(-3, 20)})
        elif kind == "move":
            ops.append({"op": "move", "component_id": rng.choice(ID_POOL), "to_index": rng.randint(-3, 20)})
        elif kind == "remove":
            ops.append({"op": "remove", "component_id": rng.choice(ID_POOL)})
        else:
            ops.append({"op": "set", "layout": [rng.choice(ID_POOL) for _ in range(rng.randint(0, 8))]})
    return {"upsert_components": upserts, "delete_components": deletes, "layout_patch": ops}


class TestRandomizedInvariants:
    def test_invariants_hold_after_every_patch(self):
        rng = random.Random(1234)
        for _ in range(50):
            screen = empty_screen()
            for _ in range(20):
                screen = apply_patch(screen, random_patch(rng))
                assert check_invariants(screen) == []
