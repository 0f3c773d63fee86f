import unittest
from datetime import date
from unittest.mock import patch

from familytree.db import InMemoryDbClient, SqlDbClient
from familytree.errors import (
    ConflictError,
    ImageHostError,
    NotFoundError,
    ValidationError,
)
from familytree.reconciler import EdgeInput, GraphReconciler, NodeInput, NodePlacement
from familytree.records import Position, RelationshipType
from familytree.storage import InMemoryImageHost, PhotoUpload

OWNER = "owner-1"
OTHER_OWNER = "owner-2"


class ReconcilerCases:
    """Behaviour shared by every store; subclasses provide ``make_db``."""

    def make_db(self):
        raise NotImplementedError

    def setUp(self):
        self.db = self.make_db()
        self.images = InMemoryImageHost()
        self.reconciler = GraphReconciler(self.db, self.images)

    def add_node(self, node_id, name=None, owner=OWNER, **kwargs):
        node, created = self.reconciler.upsert_node(
            owner,
            NodeInput(node_id=node_id, name=name or node_id, **kwargs),
        )
        self.assertTrue(created)
        return node

    def add_edge(self, source, target, connection_id=None, owner=OWNER, kind="sibling"):
        return self.reconciler.add_edge(
            owner,
            EdgeInput(
                source_node_id=source,
                target_node_id=target,
                relationship_type=kind,
                connection_id=connection_id,
            ),
        )

    def edge_ids(self, owner=OWNER):
        return sorted(e.connection_id for e in self.db.list_edges(owner))

    # Nodes

    def test_create_node_defaults(self):
        node = self.add_node(None, name="  Grandma  ", position_x=10, position_y=20)
        self.assertTrue(node.node_id.startswith("node-"))
        self.assertEqual(node.name, "Grandma")
        self.assertEqual(node.gender, "other")
        self.assertEqual(node.position, Position(x=10.0, y=20.0))
        self.assertEqual(node.style["backgroundColor"], "#ffffff")

    def test_create_node_random_position_in_canvas(self):
        node = self.add_node("n1")
        self.assertTrue(0 <= node.position.x <= 400)
        self.assertTrue(0 <= node.position.y <= 300)

    def test_create_requires_name(self):
        with self.assertRaises(ValidationError):
            self.reconciler.upsert_node(OWNER, NodeInput(node_id="n1"))

    def test_create_rejects_bad_gender(self):
        with self.assertRaises(ValidationError):
            self.reconciler.upsert_node(
                OWNER, NodeInput(node_id="n1", name="A", gender="unknown")
            )

    def test_duplicate_node_id_conflicts(self):
        self.add_node("n1")
        with self.assertRaises(ConflictError):
            self.reconciler.upsert_node(OWNER, NodeInput(node_id="n1", name="again"))

    def test_same_node_id_for_other_owner_is_allowed(self):
        self.add_node("n1")
        self.add_node("n1", owner=OTHER_OWNER)
        self.assertEqual(len(self.db.list_nodes(OTHER_OWNER)), 1)

    def test_edit_is_partial(self):
        self.add_node("n1", name="Ann", occupation="Nurse", position_x=1, position_y=2)
        node, created = self.reconciler.upsert_node(
            OWNER,
            NodeInput(node_id="n1", notes="likes tea", position_x=5),
            is_editing=True,
        )
        self.assertFalse(created)
        self.assertEqual(node.name, "Ann")
        self.assertEqual(node.occupation, "Nurse")
        self.assertEqual(node.notes, "likes tea")
        # x alone does not move the node
        self.assertEqual(node.position, Position(x=1.0, y=2.0))

    def test_edit_dates_and_position(self):
        self.add_node("n1")
        node, _ = self.reconciler.upsert_node(
            OWNER,
            NodeInput(
                node_id="n1",
                date_of_birth=date(1950, 3, 1),
                position_x=7,
                position_y=8,
            ),
            is_editing=True,
        )
        self.assertEqual(node.date_of_birth, date(1950, 3, 1))
        self.assertEqual(node.position, Position(x=7.0, y=8.0))
        stored = self.db.get_node(OWNER, "n1")
        self.assertEqual(stored.position, Position(x=7.0, y=8.0))

    def test_edit_missing_node_not_found(self):
        with self.assertRaises(NotFoundError):
            self.reconciler.upsert_node(
                OWNER, NodeInput(node_id="ghost", name="x"), is_editing=True
            )

    def test_edit_other_owners_node_not_found(self):
        self.add_node("n1", owner=OTHER_OWNER)
        with self.assertRaises(NotFoundError):
            self.reconciler.upsert_node(
                OWNER, NodeInput(node_id="n1", name="x"), is_editing=True
            )

    def test_photo_replacement_releases_old_asset(self):
        node, _ = self.reconciler.upsert_node(
            OWNER,
            NodeInput(node_id="n1", name="A"),
            photo=PhotoUpload(b"first", "image/png"),
        )
        old_id = node.photo.public_id
        self.assertIn(old_id, self.images.stored_objects)

        node, _ = self.reconciler.upsert_node(
            OWNER,
            NodeInput(node_id="n1"),
            is_editing=True,
            photo=PhotoUpload(b"second", "image/png"),
        )
        self.assertNotEqual(node.photo.public_id, old_id)
        self.assertNotIn(old_id, self.images.stored_objects)
        self.assertIn(node.photo.public_id, self.images.stored_objects)
        self.assertTrue(node.photo.public_id.startswith("family-tree/"))

    def test_edit_store_miss_releases_new_photo(self):
        self.add_node("n1")
        with patch.object(self.db, "update_node", return_value=None):
            with self.assertRaises(NotFoundError):
                self.reconciler.upsert_node(
                    OWNER,
                    NodeInput(node_id="n1"),
                    is_editing=True,
                    photo=PhotoUpload(b"data", "image/png"),
                )
        self.assertEqual(self.images.stored_objects, {})

    def test_edit_store_failure_releases_new_photo(self):
        self.add_node("n1")
        with patch.object(self.db, "update_node", side_effect=RuntimeError("down")):
            with self.assertRaises(RuntimeError):
                self.reconciler.upsert_node(
                    OWNER,
                    NodeInput(node_id="n1"),
                    is_editing=True,
                    photo=PhotoUpload(b"data", "image/png"),
                )
        self.assertEqual(self.images.stored_objects, {})

    def test_non_finite_position_is_validation_error(self):
        with self.assertRaises(ValidationError):
            self.reconciler.upsert_node(
                OWNER, NodeInput(node_id="a", name="A", position_x=float("nan"), position_y=1.0)
            )
        self.assertEqual(self.db.list_nodes(OWNER), [])

        self.add_node("a", position_x=1, position_y=2)
        with self.assertRaises(ValidationError):
            self.reconciler.save_batch(
                OWNER, [NodePlacement("a", Position(float("inf"), 0.0))]
            )
        self.assertEqual(self.db.get_node(OWNER, "a").position, Position(1.0, 2.0))

    def test_upload_failure_aborts_create(self):
        self.images.fail_uploads = True
        with self.assertRaises(ImageHostError):
            self.reconciler.upsert_node(
                OWNER,
                NodeInput(node_id="n1", name="A"),
                photo=PhotoUpload(b"data", "image/png"),
            )
        self.assertEqual(self.db.list_nodes(OWNER), [])

    def test_delete_node_cascades_to_touching_edges_only(self):
        for node_id in ("a", "b", "c", "d"):
            self.add_node(node_id)
        self.add_edge("a", "b", "e1")
        self.add_edge("c", "a", "e2")
        self.add_edge("c", "d", "e3")

        deletion = self.reconciler.delete_node(OWNER, "a")
        self.assertEqual(deletion.deleted_edges, 2)
        self.assertEqual(deletion.node.node_id, "a")
        self.assertFalse(deletion.photo_deleted)
        self.assertEqual(self.edge_ids(), ["e3"])
        self.assertEqual(
            sorted(n.node_id for n in self.db.list_nodes(OWNER)), ["b", "c", "d"]
        )

    def test_delete_node_releases_photo(self):
        node, _ = self.reconciler.upsert_node(
            OWNER,
            NodeInput(node_id="n1", name="A"),
            photo=PhotoUpload(b"data", "image/jpeg"),
        )
        deletion = self.reconciler.delete_node(OWNER, "n1")
        self.assertTrue(deletion.photo_deleted)
        self.assertNotIn(node.photo.public_id, self.images.stored_objects)

    def test_delete_node_survives_release_failure(self):
        node, _ = self.reconciler.upsert_node(
            OWNER,
            NodeInput(node_id="n1", name="A"),
            photo=PhotoUpload(b"data", "image/jpeg"),
        )
        self.images.fail_destroys = True
        with self.assertLogs("familytree.storage", level="WARNING"):
            deletion = self.reconciler.delete_node(OWNER, "n1")
        self.assertTrue(deletion.photo_deleted)
        self.assertIn(node.photo.public_id, self.images.stored_objects)
        self.assertIsNone(self.db.get_node(OWNER, "n1"))

    def test_delete_missing_or_foreign_node_not_found(self):
        self.add_node("n1", owner=OTHER_OWNER)
        with self.assertRaises(NotFoundError):
            self.reconciler.delete_node(OWNER, "n1")
        self.assertIsNotNone(self.db.get_node(OTHER_OWNER, "n1"))

    def test_delete_node_by_name(self):
        self.add_node("n1", name="Alice Smith")
        self.add_node("n2", name="Bob")
        self.add_edge("n1", "n2", "e1")
        deletion = self.reconciler.delete_node_by_name(OWNER, "smith")
        self.assertEqual(deletion.node.node_id, "n1")
        self.assertEqual(deletion.deleted_edges, 1)
        with self.assertRaises(NotFoundError):
            self.reconciler.delete_node_by_name(OWNER, "Carol")

    # Edges

    def test_add_edge_defaults(self):
        self.add_node("a")
        self.add_node("b")
        edge = self.add_edge("a", "b", kind="parent-child")
        self.assertTrue(edge.connection_id.startswith("connection-"))
        self.assertIs(edge.relationship_type, RelationshipType.PARENT_CHILD)
        self.assertEqual(edge.style["strokeWidth"], 2)

    def test_duplicate_endpoints_rejected(self):
        self.add_edge("a", "b", "e1")
        with self.assertRaises(ConflictError):
            self.add_edge("a", "b", "e2")
        self.assertEqual(self.edge_ids(), ["e1"])

    def test_duplicate_connection_id_rejected(self):
        self.add_edge("a", "b", "e1")
        with self.assertRaises(ConflictError):
            self.add_edge("b", "c", "e1")

    def test_reverse_direction_is_a_different_edge(self):
        self.add_edge("a", "b", "e1")
        self.add_edge("b", "a", "e2")
        self.assertEqual(self.edge_ids(), ["e1", "e2"])

    def test_add_edge_validation(self):
        with self.assertRaises(ValidationError):
            self.add_edge("a", "b", kind="best-friend")
        with self.assertRaises(ValidationError):
            self.add_edge("a", None)

    def test_delete_edge(self):
        self.add_edge("a", "b", "e1")
        self.reconciler.delete_edge(OWNER, "e1")
        self.assertEqual(self.edge_ids(), [])
        with self.assertRaises(NotFoundError):
            self.reconciler.delete_edge(OWNER, "e1")

    def test_delete_foreign_edge_not_found(self):
        self.add_edge("a", "b", "e1", owner=OTHER_OWNER)
        with self.assertRaises(NotFoundError):
            self.reconciler.delete_edge(OWNER, "e1")
        self.assertEqual(self.edge_ids(OTHER_OWNER), ["e1"])

    # Batch save

    def batch_edges(self):
        return [
            EdgeInput(
                connection_id="e1",
                source_node_id="a",
                target_node_id="b",
                relationship_type="spouse",
            ),
            EdgeInput(
                connection_id="e2",
                source_node_id="b",
                target_node_id="c",
                relationship_type="not-a-type",
            ),
        ]

    def test_save_batch_diff(self):
        for node_id in ("a", "b", "c"):
            self.add_node(node_id)
        self.add_edge("c", "a", "stale")

        outcome = self.reconciler.save_batch(
            OWNER,
            [
                NodePlacement("a", Position(1, 1)),
                NodePlacement("ghost", Position(9, 9)),
            ],
            self.batch_edges(),
        )
        self.assertEqual(outcome.nodes_updated, 1)
        self.assertEqual(outcome.edges_deleted, 1)
        self.assertEqual(outcome.edges_inserted, 2)
        self.assertEqual(self.edge_ids(), ["e1", "e2"])
        self.assertEqual(self.db.get_node(OWNER, "a").position, Position(1.0, 1.0))
        self.assertIsNone(self.db.get_node(OWNER, "ghost"))

        kinds = {e.connection_id: e.relationship_type for e in self.db.list_edges(OWNER)}
        self.assertIs(kinds["e1"], RelationshipType.SPOUSE)
        self.assertIs(kinds["e2"], RelationshipType.OTHER)

    def test_save_batch_is_idempotent(self):
        for node_id in ("a", "b", "c"):
            self.add_node(node_id)
        placements = [NodePlacement("b", Position(3, 4))]
        self.reconciler.save_batch(OWNER, placements, self.batch_edges())
        first = self.edge_ids()

        outcome = self.reconciler.save_batch(OWNER, placements, self.batch_edges())
        self.assertEqual(outcome.edges_deleted, 0)
        self.assertEqual(outcome.edges_inserted, 0)
        self.assertEqual(self.edge_ids(), first)
        self.assertEqual(self.db.get_node(OWNER, "b").position, Position(3.0, 4.0))

    def test_save_batch_without_edges_leaves_edges(self):
        self.add_node("a")
        self.add_edge("a", "b", "e1")
        outcome = self.reconciler.save_batch(
            OWNER, [NodePlacement("a", Position(2, 2))]
        )
        self.assertEqual(outcome.edges_deleted, 0)
        self.assertEqual(self.edge_ids(), ["e1"])

    def test_save_batch_with_empty_edges_deletes_all(self):
        self.add_edge("a", "b", "e1")
        self.add_edge("b", "c", "e2")
        outcome = self.reconciler.save_batch(OWNER, [], [])
        self.assertEqual(outcome.edges_deleted, 2)
        self.assertEqual(self.edge_ids(), [])

    def test_save_batch_collapses_duplicate_ids(self):
        edges = self.batch_edges()
        edges.append(
            EdgeInput(connection_id="e1", source_node_id="x", target_node_id="y")
        )
        outcome = self.reconciler.save_batch(OWNER, [], edges)
        self.assertEqual(outcome.edges_inserted, 2)
        stored = {e.connection_id: e for e in self.db.list_edges(OWNER)}
        self.assertEqual(stored["e1"].source_node_id, "a")

    def test_save_batch_requires_edge_ids(self):
        with self.assertRaises(ValidationError):
            self.reconciler.save_batch(
                OWNER, [], [EdgeInput(source_node_id="a", target_node_id="b")]
            )

    def test_save_batch_duplicate_endpoints_applies_nothing(self):
        self.add_node("a")
        self.add_edge("a", "b", "keep")
        edges = [
            EdgeInput(connection_id="keep", source_node_id="a", target_node_id="b"),
            EdgeInput(connection_id="n1", source_node_id="c", target_node_id="d"),
            EdgeInput(connection_id="n2", source_node_id="c", target_node_id="d"),
        ]
        with self.assertRaises(ConflictError):
            self.reconciler.save_batch(
                OWNER, [NodePlacement("a", Position(50, 50))], edges
            )
        self.assertEqual(self.edge_ids(), ["keep"])

    def test_save_batch_is_owner_scoped(self):
        self.add_edge("a", "b", "foreign", owner=OTHER_OWNER)
        self.reconciler.save_batch(OWNER, [], [])
        self.assertEqual(self.edge_ids(OTHER_OWNER), ["foreign"])

    # Clear

    def test_clear_all(self):
        self.add_node("a")
        self.add_node("b")
        self.add_edge("a", "b", "e1")
        self.add_node("a", owner=OTHER_OWNER)
        self.assertEqual(self.reconciler.clear_all(OWNER), (2, 1))
        graph = self.reconciler.get_graph(OWNER)
        self.assertEqual((graph.nodes, graph.edges), ([], []))
        self.assertEqual(len(self.db.list_nodes(OTHER_OWNER)), 1)


class InMemoryReconcilerTests(ReconcilerCases, unittest.TestCase):
    def make_db(self):
        return InMemoryDbClient()


class SqlReconcilerTests(ReconcilerCases, unittest.TestCase):
    def make_db(self):
        return SqlDbClient("sqlite+pysqlite:///:memory:")


if __name__ == "__main__":
    unittest.main()
