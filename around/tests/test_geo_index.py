import unittest
from unittest.mock import patch

from around.geo import offset_north
from around.geo_index import (
    POST_MAPPINGS,
    ElasticsearchGeoIndex,
    InMemoryGeoIndex,
    build_radius_query,
    ensure_index,
    format_distance,
)
from around.models import Location, Post

ORIGIN = (37.77, -122.42)


def make_post(post_id: str, lat: float, lon: float, message: str = "hello") -> Post:
    return Post(id=post_id, user="alice", message=message, location=Location(lat, lon))


class EnsureIndexTests(unittest.TestCase):
    def test_creates_index_with_geo_point_location(self):
        index = InMemoryGeoIndex()
        self.assertTrue(ensure_index(index))
        self.assertTrue(index.index_exists())
        self.assertEqual(
            index.mappings["properties"]["location"], {"type": "geo_point"}
        )

    def test_existing_index_is_left_alone(self):
        index = InMemoryGeoIndex(mappings={"properties": {}})
        self.assertFalse(ensure_index(index))
        self.assertEqual(index.mappings, {"properties": {}})


class RadiusQueryTests(unittest.TestCase):
    def test_query_shape(self):
        query = build_radius_query(37.77, -122.42, 200.0)
        self.assertEqual(
            query,
            {
                "bool": {
                    "filter": {
                        "geo_distance": {
                            "distance": "200km",
                            "location": {"lat": 37.77, "lon": -122.42},
                        }
                    }
                }
            },
        )

    def test_distance_formatting(self):
        self.assertEqual(format_distance(1.5), "1.5km")
        self.assertEqual(format_distance(20), "20km")


class InMemoryGeoIndexTests(unittest.TestCase):
    def setUp(self):
        self.index = InMemoryGeoIndex()
        ensure_index(self.index)

    def test_boundary_at_exact_distance(self):
        lat, lon = offset_north(*ORIGIN, 1.0)
        self.index.put("p1", make_post("p1", lat, lon))

        self.assertEqual(
            [p.id for p in self.index.query_radius(*ORIGIN, 1.0)], ["p1"]
        )
        self.assertEqual(
            [p.id for p in self.index.query_radius(*ORIGIN, 1.5)], ["p1"]
        )
        self.assertEqual(self.index.query_radius(*ORIGIN, 0.999), [])

    def test_radius_selects_nearby_posts(self):
        for post_id, km in [("near", 10.0), ("mid", 50.0), ("far", 190.0)]:
            lat, lon = offset_north(*ORIGIN, km)
            self.index.put(post_id, make_post(post_id, lat, lon))

        wide = [p.id for p in self.index.query_radius(*ORIGIN, 200.0)]
        self.assertEqual(wide, ["near", "mid", "far"])
        narrow = [p.id for p in self.index.query_radius(*ORIGIN, 20.0)]
        self.assertEqual(narrow, ["near"])

    def test_offset_and_limit(self):
        for i in range(5):
            self.index.put(f"p{i}", make_post(f"p{i}", *ORIGIN))
        page = self.index.query_radius(*ORIGIN, 1.0, offset=1, limit=2)
        self.assertEqual([p.id for p in page], ["p1", "p2"])

    def test_put_during_query_does_not_break_iteration(self):
        self.index.put("p0", make_post("p0", *ORIGIN))
        self.index.put("p1", make_post("p1", *ORIGIN))

        def put_while_scanning(*args):
            self.index.put("late", make_post("late", *ORIGIN))
            return 0.0

        with patch("around.geo_index.haversine_km", side_effect=put_while_scanning):
            hits = self.index.query_radius(*ORIGIN, 1.0)

        self.assertEqual([p.id for p in hits], ["p0", "p1"])
        self.assertIn("late", self.index.documents)

    def test_stored_copy_is_decoupled_from_caller(self):
        post = make_post("p1", *ORIGIN)
        self.index.put("p1", post)
        post.url = "https://changed"
        self.assertEqual(self.index.query_radius(*ORIGIN, 1.0)[0].url, "")


class ElasticsearchGeoIndexTests(unittest.TestCase):
    def setUp(self):
        patcher = patch("around.geo_index.Elasticsearch")
        self.mock_es_cls = patcher.start()
        self.addCleanup(patcher.stop)
        self.es = self.mock_es_cls.return_value
        self.index = ElasticsearchGeoIndex(
            "http://es.test:9200", "around", request_timeout=3.0
        )

    def test_client_gets_timeout(self):
        self.mock_es_cls.assert_called_once_with(
            "http://es.test:9200", request_timeout=3.0
        )

    def test_requires_url(self):
        with self.assertRaises(ValueError):
            ElasticsearchGeoIndex("", "around")

    def test_ensure_index_creates_mapping_when_missing(self):
        self.es.indices.exists.return_value = False
        self.assertTrue(ensure_index(self.index))
        self.es.indices.create.assert_called_once_with(
            index="around", mappings=POST_MAPPINGS
        )

    def test_ensure_index_skips_existing(self):
        self.es.indices.exists.return_value = True
        self.assertFalse(ensure_index(self.index))
        self.es.indices.create.assert_not_called()

    def test_put_refreshes(self):
        post = make_post("abc", 37.77, -122.42)
        post.url = "https://img"
        self.index.put("abc", post)
        self.es.index.assert_called_once_with(
            index="around",
            id="abc",
            document={
                "user": "alice",
                "message": "hello",
                "location": {"lat": 37.77, "lon": -122.42},
                "url": "https://img",
            },
            refresh=True,
        )

    def test_query_radius_decodes_hits(self):
        self.es.search.return_value = {
            "took": 3,
            "hits": {
                "hits": [
                    {
                        "_id": "abc",
                        "_source": {
                            "user": "bob",
                            "message": "hi",
                            "location": {"lat": 1.0, "lon": 2.0},
                            "url": "",
                        },
                    }
                ]
            },
        }
        posts = self.index.query_radius(1.0, 2.0, 20.0, offset=5, limit=10)

        self.es.search.assert_called_once_with(
            index="around",
            query=build_radius_query(1.0, 2.0, 20.0),
            from_=5,
            size=10,
        )
        self.assertEqual(
            posts,
            [Post(id="abc", user="bob", message="hi", location=Location(1.0, 2.0))],
        )

    @patch("around.geo_index.scan")
    def test_query_radius_without_limit_scans_every_hit(self, mock_scan):
        mock_scan.return_value = iter(
            {
                "_id": f"p{i}",
                "_source": {
                    "user": "bob",
                    "message": "hi",
                    "location": {"lat": 1.0, "lon": 2.0},
                    "url": "",
                },
            }
            for i in range(25)
        )

        posts = self.index.query_radius(1.0, 2.0, 20.0, offset=3)

        mock_scan.assert_called_once_with(
            self.es,
            index="around",
            query={"query": build_radius_query(1.0, 2.0, 20.0)},
            size=1000,
        )
        self.es.search.assert_not_called()
        self.assertEqual(len(posts), 22)
        self.assertEqual(posts[0].id, "p3")
        self.assertEqual(posts[-1].id, "p24")

    def test_close(self):
        self.index.close()
        self.es.close.assert_called_once()


if __name__ == "__main__":
    unittest.main()
