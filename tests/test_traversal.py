import random
import unittest
from collections import deque

from docgraph.graph.errors import EntityNotFound, InvalidArgument
from docgraph.graph.index import build_index
from docgraph.graph.models import Direction, Entity, EntityType, Relation
from docgraph.graph.traversal import NO_PATH_REASON, neighborhood, shortest_path


def ent(eid, etype=EntityType.FUNCTION):
    return Entity(id=eid, name=eid, type=etype)


def rel(rid, a, b, label="calls"):
    return Relation(id=rid, from_entity_id=a, to_entity_id=b, relationship=label)


def scenario_index():
    # A:function -calls-> B:function -uses-> C:class
    return build_index(
        [ent("A"), ent("B"), ent("C", EntityType.CLASS)],
        [rel("r1", "A", "B", "calls"), rel("r2", "B", "C", "uses")],
    )


def chain_index(n):
    ids = [f"n{i}" for i in range(n)]
    return build_index([ent(i) for i in ids], [rel(f"r{i}", ids[i], ids[i + 1]) for i in range(n - 1)])


def reference_distance(edges, n, src, dst):
    adj = {i: set() for i in range(n)}
    for a, b in edges:
        if a != b:
            adj[a].add(b)
            adj[b].add(a)
    dist = {src: 0}
    q = deque([src])
    while q:
        u = q.popleft()
        for v in adj[u]:
            if v not in dist:
                dist[v] = dist[u] + 1
                q.append(v)
    return dist.get(dst)


class TestNeighborhood(unittest.TestCase):
    def test_scenario_outgoing_depth_one(self):
        res = neighborhood(scenario_index(), "A", direction="outgoing", max_depth=1, node_limit=50)
        self.assertEqual(res.nodes, ["A", "B"])
        self.assertEqual([(e.from_entity_id, e.to_entity_id) for e in res.edges], [("A", "B")])
        self.assertEqual(res.stats.total_nodes, 2)
        self.assertEqual(res.stats.max_depth_reached, 1)
        self.assertFalse(res.stats.truncated)

    def test_depth_zero_returns_only_start(self):
        idx = scenario_index()
        for eid in ("A", "B", "C"):
            res = neighborhood(idx, eid, max_depth=0, node_limit=10)
            self.assertEqual(res.nodes, [eid])
            self.assertEqual(res.edges, [])

    def test_incoming_and_both(self):
        idx = scenario_index()
        res_in = neighborhood(idx, "B", direction=Direction.INCOMING, max_depth=2, node_limit=10)
        self.assertEqual(res_in.nodes, ["B", "A"])

        res_both = neighborhood(idx, "B", direction="both", max_depth=1, node_limit=10)
        # Outgoing relations are scanned before incoming ones.
        self.assertEqual(res_both.nodes, ["B", "C", "A"])
        self.assertEqual(len(res_both.edges), 2)

    def test_depth_bounds_expansion(self):
        idx = chain_index(6)
        res = neighborhood(idx, "n0", direction="outgoing", max_depth=3, node_limit=100)
        self.assertEqual(res.nodes, ["n0", "n1", "n2", "n3"])
        self.assertEqual(res.depths["n3"], 3)
        self.assertEqual(res.stats.max_depth_reached, 3)

    def test_node_limit_allows_partial_level(self):
        ents = [ent("hub")] + [ent(f"s{i}") for i in range(5)]
        rels = [rel(f"r{i}", "hub", f"s{i}") for i in range(5)]
        res = neighborhood(build_index(ents, rels), "hub", max_depth=2, node_limit=3)
        self.assertEqual(res.nodes, ["hub", "s0", "s1"])
        self.assertTrue(res.stats.truncated)
        emitted = set(res.nodes)
        for e in res.edges:
            self.assertIn(e.from_entity_id, emitted)
            self.assertIn(e.to_entity_id, emitted)

    def test_exact_fit_is_not_truncated(self):
        idx = build_index([ent("A"), ent("B")], [rel("r1", "A", "B")])
        res = neighborhood(idx, "A", direction="outgoing", max_depth=1, node_limit=2)
        self.assertEqual(res.nodes, ["A", "B"])
        self.assertFalse(res.stats.truncated)

        lonely = neighborhood(build_index([ent("X")], []), "X", max_depth=2, node_limit=1)
        self.assertEqual(lonely.nodes, ["X"])
        self.assertFalse(lonely.stats.truncated)

    def test_limit_at_level_boundary(self):
        # Limit reached on the last node of level 1; level 2 is only reachable with depth to spare.
        idx = chain_index(4)
        deeper = neighborhood(idx, "n0", direction="outgoing", max_depth=3, node_limit=2)
        self.assertEqual(deeper.nodes, ["n0", "n1"])
        self.assertTrue(deeper.stats.truncated)

        shallow = neighborhood(idx, "n0", direction="outgoing", max_depth=1, node_limit=2)
        self.assertFalse(shallow.stats.truncated)

        start_only = neighborhood(idx, "n0", direction="outgoing", max_depth=1, node_limit=1)
        self.assertTrue(start_only.stats.truncated)

    def test_filtered_out_relations_do_not_truncate(self):
        res = neighborhood(scenario_index(), "B", max_depth=2, node_limit=2, relation_types=["uses"])
        self.assertEqual(res.nodes, ["B", "C"])
        self.assertFalse(res.stats.truncated)

    def test_truncated_matches_unlimited_walk(self):
        rng = random.Random(11)
        for _ in range(60):
            n = rng.randint(1, 12)
            ids = [f"v{i}" for i in range(n)]
            rels = [rel(f"r{k}", rng.choice(ids), rng.choice(ids)) for k in range(rng.randint(0, 30))]
            idx = build_index([ent(i) for i in ids], rels)
            direction = rng.choice(["outgoing", "incoming", "both"])
            depth = rng.randint(0, 4)
            full = neighborhood(idx, ids[0], direction=direction, max_depth=depth, node_limit=100)
            limited = neighborhood(idx, ids[0], direction=direction, max_depth=depth, node_limit=rng.randint(1, n))
            self.assertEqual(full.nodes[: len(limited.nodes)], limited.nodes)
            self.assertEqual(limited.stats.truncated, len(full.nodes) > len(limited.nodes))

    def test_relation_filter(self):
        res = neighborhood(scenario_index(), "B", max_depth=2, node_limit=10, relation_types=["uses"])
        self.assertEqual(res.nodes, ["B", "C"])
        self.assertEqual([e.relationship for e in res.edges], ["uses"])

    def test_no_duplicate_nodes_or_edges(self):
        # Diamond plus parallel relations with the same label.
        ents = [ent(x) for x in "abcd"]
        rels = [
            rel("r1", "a", "b"),
            rel("r2", "a", "c"),
            rel("r3", "b", "d"),
            rel("r4", "c", "d"),
            rel("r5", "a", "b"),
            rel("r6", "a", "b", "uses"),
        ]
        res = neighborhood(build_index(ents, rels), "a", max_depth=3, node_limit=50)
        self.assertEqual(len(res.nodes), len(set(res.nodes)))
        keys = [(e.from_entity_id, e.to_entity_id, e.relationship) for e in res.edges]
        self.assertEqual(len(keys), len(set(keys)))
        self.assertIn(("a", "b", "uses"), keys)
        self.assertNotIn("r5", [e.id for e in res.edges])

    def test_no_duplicate_nodes_on_random_graphs(self):
        rng = random.Random(7)
        for _ in range(30):
            n = rng.randint(1, 15)
            ids = [f"v{i}" for i in range(n)]
            rels = [rel(f"r{k}", rng.choice(ids), rng.choice(ids)) for k in range(rng.randint(0, 40))]
            idx = build_index([ent(i) for i in ids], rels)
            res = neighborhood(idx, ids[0], max_depth=rng.randint(0, 4), node_limit=rng.randint(1, 20))
            self.assertEqual(len(res.nodes), len(set(res.nodes)))
            self.assertLessEqual(len(res.nodes), max(1, res.stats.total_nodes))

    def test_unknown_start(self):
        with self.assertRaises(EntityNotFound) as cm:
            neighborhood(scenario_index(), "missing", max_depth=1, node_limit=5)
        self.assertEqual(cm.exception.entity_id, "missing")

    def test_invalid_arguments(self):
        idx = scenario_index()
        with self.assertRaises(InvalidArgument):
            neighborhood(idx, "A", max_depth=-1, node_limit=5)
        with self.assertRaises(InvalidArgument):
            neighborhood(idx, "A", max_depth=1, node_limit=0)
        with self.assertRaises(InvalidArgument):
            neighborhood(idx, "A", max_depth=1, node_limit=5, direction="sideways")
        with self.assertRaises(InvalidArgument):
            neighborhood(idx, "A", max_depth=11, node_limit=5)
        with self.assertRaises(InvalidArgument):
            neighborhood(idx, "A", max_depth=1, node_limit=5, node_limit_cap=4)


class TestShortestPath(unittest.TestCase):
    def test_scenario_path(self):
        res = shortest_path(scenario_index(), "A", "C", 3)
        self.assertTrue(res.found)
        self.assertEqual(res.path, ["A", "B", "C"])
        self.assertEqual([r.id for r in res.relations], ["r1", "r2"])

    def test_same_endpoint_is_zero_hop(self):
        idx = scenario_index()
        for depth in (0, 1, 6):
            res = shortest_path(idx, "B", "B", depth)
            self.assertTrue(res.found)
            self.assertEqual(res.path, ["B"])

    def test_treats_relations_as_undirected(self):
        res = shortest_path(scenario_index(), "C", "A", 2)
        self.assertEqual(res.path, ["C", "B", "A"])

    def test_depth_limit(self):
        idx = chain_index(5)
        res = shortest_path(idx, "n0", "n4", 3)
        self.assertFalse(res.found)
        self.assertEqual(res.reason, NO_PATH_REASON)
        self.assertIsNone(res.path)

        res = shortest_path(idx, "n0", "n4", 4)
        self.assertTrue(res.found)
        self.assertEqual(len(res.path) - 1, 4)

    def test_disconnected(self):
        idx = build_index([ent("a"), ent("b")], [])
        res = shortest_path(idx, "a", "b", 6)
        self.assertFalse(res.found)
        self.assertEqual(res.to_dict(), {"found": False, "reason": NO_PATH_REASON})

    def test_unknown_endpoints(self):
        idx = scenario_index()
        with self.assertRaises(EntityNotFound):
            shortest_path(idx, "nope", "A", 3)
        with self.assertRaises(EntityNotFound):
            shortest_path(idx, "A", "nope", 3)
        with self.assertRaises(InvalidArgument):
            shortest_path(idx, "A", "C", -1)

    def test_matches_reference_bfs(self):
        rng = random.Random(1234)
        for _ in range(60):
            n = rng.randint(2, 20)
            ids = [f"v{i}" for i in range(n)]
            pairs = [(rng.randrange(n), rng.randrange(n)) for _ in range(rng.randint(0, 2 * n))]
            idx = build_index(
                [ent(i) for i in ids],
                [rel(f"r{k}", ids[a], ids[b]) for k, (a, b) in enumerate(pairs)],
            )
            src, dst = rng.randrange(n), rng.randrange(n)
            max_depth = rng.randint(0, 8)

            expected = reference_distance(pairs, n, src, dst)
            res = shortest_path(idx, ids[src], ids[dst], max_depth)

            if expected is not None and expected <= max_depth:
                self.assertTrue(res.found)
                self.assertEqual(len(res.path) - 1, expected)
                self.assertEqual(res.path[0], ids[src])
                self.assertEqual(res.path[-1], ids[dst])
                for a, b in zip(res.path, res.path[1:]):
                    self.assertIn(b, idx.neighbors(a))
            else:
                self.assertFalse(res.found)

            if res.found:
                self.assertLessEqual(len(res.path) - 1, max_depth)


if __name__ == "__main__":
    unittest.main()
