from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import boto3

from .model import Container, Entry, Prefix

logger = logging.getLogger(__name__)

DELIMITER = "/"
PAGE_SIZE = 1000
# get_bucket_location reports buckets in us-east-1 with an empty constraint.
DEFAULT_BUCKET_REGION = "us-east-1"


@dataclass(frozen=True)
class Page:
    subprefixes: list[Prefix]
    entries: list[Entry]


class S3Service:
    def __init__(
        self,
        profile: Optional[str] = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
    ) -> None:
        self.profile = None if profile == "default" else profile
        self._region = region
        self._endpoint_url = endpoint_url
        self._client_instance = None

    def _client(self):
        if self._client_instance is not None:
            return self._client_instance
        if self.profile is None:
            session = boto3.session.Session()
        else:
            session = boto3.session.Session(profile_name=self.profile)
        kwargs = {}
        if self._region:
            kwargs["region_name"] = self._region
        if self._endpoint_url:
            kwargs["endpoint_url"] = self._endpoint_url
        self._client_instance = session.client("s3", **kwargs)
        return self._client_instance

    async def list_containers(self) -> list[Container]:
        names = await asyncio.to_thread(self._list_bucket_names)
        tasks = [asyncio.to_thread(self._bucket_location, name) for name in names]
        locations = await asyncio.gather(*tasks, return_exceptions=True)
        containers: list[Container] = []
        for name, location in zip(names, locations):
            if isinstance(location, Exception):
                logger.debug("location lookup failed for %s: %s", name, location)
                location = None
            containers.append(Container(id=name, location=location))
        return containers

    def _list_bucket_names(self) -> list[str]:
        client = self._client()
        names: list[str] = []
        continuation: Optional[str] = None
        while True:
            kwargs = {}
            if continuation:
                kwargs["ContinuationToken"] = continuation
            response = client.list_buckets(**kwargs)
            for bucket in response.get("Buckets", []):
                name = bucket.get("Name")
                if name:
                    names.append(name)
            continuation = response.get("ContinuationToken")
            if not continuation:
                break
        return names

    def _bucket_location(self, bucket: str) -> Optional[str]:
        client = self._client()
        response = client.get_bucket_location(Bucket=bucket)
        if not isinstance(response, dict):
            return None
        return response.get("LocationConstraint") or DEFAULT_BUCKET_REGION

    async def list_children(self, bucket: str, prefix: str) -> Page:
        return await asyncio.to_thread(self._list_children, bucket, prefix)

    def _list_children(self, bucket: str, prefix: str) -> Page:
        client = self._client()
        subprefixes: list[Prefix] = []
        entries: list[Entry] = []
        continuation: Optional[str] = None
        pages = 0
        while True:
            kwargs = {
                "Bucket": bucket,
                "Delimiter": DELIMITER,
                "Prefix": prefix,
                "MaxKeys": PAGE_SIZE,
            }
            if continuation:
                kwargs["ContinuationToken"] = continuation
            response = client.list_objects_v2(**kwargs)
            pages += 1
            for entry in response.get("CommonPrefixes", []):
                value = entry.get("Prefix")
                if value:
                    subprefixes.append(Prefix(value))
            for entry in response.get("Contents", []):
                key = entry.get("Key")
                if not key:
                    continue
                if prefix and key == prefix:
                    continue
                entries.append(
                    Entry(
                        key=key,
                        size=_size(entry.get("Size")),
                        last_modified=entry.get("LastModified"),
                    )
                )
            continuation = response.get("NextContinuationToken")
            if not continuation:
                break
        logger.debug(
            "listed s3://%s/%s in %d page(s): %d prefixes, %d entries",
            bucket,
            prefix,
            pages,
            len(subprefixes),
            len(entries),
        )
        return Page(subprefixes=subprefixes, entries=entries)


def _size(value: object) -> Optional[int]:
    if value is None:
        return None
    return int(value)
