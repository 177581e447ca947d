"""Object stores for pipeline results.

Addressable blob storage for the structured and tabular forms of each
fetch result. Keys follow ``{entity_id}/{timestamp}/data.{json|csv}``.
"""

from orgpipe.storage.base import ObjectStore, result_keys
from orgpipe.storage.local import LocalObjectStore
from orgpipe.storage.s3 import S3ObjectStore

__all__ = ["ObjectStore", "result_keys", "LocalObjectStore", "S3ObjectStore"]
