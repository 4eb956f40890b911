import asyncio
import unittest
from datetime import datetime, timezone

from s3nav.model import Container, Entry, Prefix
from s3nav.s3 import S3Service


class _PagedClient:
    def __init__(self, pages) -> None:
        self._pages = pages
        self.calls: list[dict] = []

    def list_objects_v2(self, **kwargs):
        self.calls.append(kwargs)
        return self._pages[len(self.calls) - 1]


class _BucketClient:
    def __init__(self, locations) -> None:
        self._locations = locations

    def list_buckets(self, **kwargs):
        return {"Buckets": [{"Name": name} for name in self._locations]}

    def get_bucket_location(self, Bucket):
        location = self._locations[Bucket]
        if isinstance(location, Exception):
            raise location
        return {"LocationConstraint": location}


class _PagedBucketClient:
    def __init__(self, pages) -> None:
        self._pages = pages
        self.calls: list[dict] = []

    def list_buckets(self, **kwargs):
        self.calls.append(kwargs)
        return self._pages[len(self.calls) - 1]

    def get_bucket_location(self, Bucket):
        return {"LocationConstraint": "eu-central-1"}


class TestS3Service(unittest.TestCase):
    def test_default_profile_is_normalized(self) -> None:
        self.assertIsNone(S3Service(profile="default").profile)
        self.assertEqual(S3Service(profile="dev").profile, "dev")

    def test_list_children_follows_continuation_tokens(self) -> None:
        modified = datetime(2024, 1, 2, tzinfo=timezone.utc)
        client = _PagedClient(
            [
                {
                    "CommonPrefixes": [{"Prefix": "data/a/"}],
                    "Contents": [
                        {"Key": "data/", "Size": 0},
                        {"Key": "data/one.csv", "Size": 10, "LastModified": modified},
                    ],
                    "IsTruncated": True,
                    "NextContinuationToken": "token-1",
                },
                {
                    "CommonPrefixes": [{"Prefix": "data/b/"}],
                    "Contents": [{"Key": "data/two.csv", "Size": 20}],
                    "IsTruncated": False,
                },
            ]
        )
        service = S3Service()
        service._client_instance = client

        page = asyncio.run(service.list_children("bucket-a", "data/"))

        self.assertEqual(page.subprefixes, [Prefix("data/a/"), Prefix("data/b/")])
        self.assertEqual(page.entries, [Entry("data/one.csv"), Entry("data/two.csv")])
        self.assertEqual(page.entries[0].size, 10)
        self.assertEqual(page.entries[0].last_modified, modified)
        self.assertEqual(len(client.calls), 2)
        self.assertNotIn("ContinuationToken", client.calls[0])
        self.assertEqual(client.calls[1]["ContinuationToken"], "token-1")
        self.assertEqual(client.calls[0]["Delimiter"], "/")
        self.assertEqual(client.calls[0]["Prefix"], "data/")

    def test_list_children_of_empty_prefix(self) -> None:
        client = _PagedClient([{"KeyCount": 0}])
        service = S3Service()
        service._client_instance = client

        page = asyncio.run(service.list_children("bucket-a", ""))

        self.assertEqual(page.subprefixes, [])
        self.assertEqual(page.entries, [])

    def test_list_containers_with_locations(self) -> None:
        service = S3Service()
        service._client_instance = _BucketClient(
            {
                "alpha": "eu-west-1",
                "beta": None,
                "gamma": Exception("AccessDenied"),
            }
        )

        containers = asyncio.run(service.list_containers())

        self.assertEqual(
            [(c.id, c.location) for c in containers],
            [("alpha", "eu-west-1"), ("beta", "us-east-1"), ("gamma", None)],
        )
        self.assertEqual(containers[0], Container("alpha"))

    def test_list_containers_follows_continuation_tokens(self) -> None:
        client = _PagedBucketClient(
            [
                {"Buckets": [{"Name": "alpha"}], "ContinuationToken": "t1"},
                {"Buckets": [{"Name": "beta"}]},
            ]
        )
        service = S3Service()
        service._client_instance = client

        containers = asyncio.run(service.list_containers())

        self.assertEqual([c.id for c in containers], ["alpha", "beta"])
        self.assertEqual(client.calls, [{}, {"ContinuationToken": "t1"}])

    def test_missing_size_stays_unknown(self) -> None:
        client = _PagedClient([{"Contents": [{"Key": "data/blob"}]}])
        service = S3Service()
        service._client_instance = client

        page = asyncio.run(service.list_children("bucket-a", "data/"))

        self.assertIsNone(page.entries[0].size)


if __name__ == "__main__":
    unittest.main()
