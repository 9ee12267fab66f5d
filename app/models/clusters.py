"""
Performance clusters - named groups of URLs analysed together
"""

import re
from typing import List, Optional
from pydantic import BaseModel, field_validator

URL_SEPARATORS = re.compile(r"[\n,;]+")
MAX_NAME_LENGTH = 200


def split_cluster_urls(values: List[str]) -> List[str]:
    """
    Flatten URL entries (one entry may hold several URLs separated by newlines,
    commas or semicolons), trimmed and de-duplicated in input order
    """
    urls: List[str] = []
    for value in values:
        for url in URL_SEPARATORS.split(value):
            url = url.strip()
            if url and url not in urls:
                urls.append(url)
    return urls


def _clean_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Cluster name is required")
    return value[:MAX_NAME_LENGTH]


def _clean_urls(value: List[str]) -> List[str]:
    urls = split_cluster_urls(value)
    if not urls:
        raise ValueError("A cluster needs at least one URL")
    return urls


class ClusterCreate(BaseModel):
    name: str
    urls: List[str]

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return _clean_name(value)

    @field_validator("urls")
    @classmethod
    def _check_urls(cls, value: List[str]) -> List[str]:
        return _clean_urls(value)


class ClusterUpdate(BaseModel):
    """Rename a cluster or replace its URL list"""
    name: Optional[str] = None
    urls: Optional[List[str]] = None

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: Optional[str]) -> Optional[str]:
        return _clean_name(value) if value is not None else None

    @field_validator("urls")
    @classmethod
    def _check_urls(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_urls(value) if value is not None else None
