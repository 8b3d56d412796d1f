"""Content upload pipeline: classification, existence checks, filtering and direct submission."""

from uploader.gateway_client import GatewayClient
from uploader.storage_check import StorageChecker
from uploader.storage_client import LedgerWriter, StorageReader
from uploader.transaction_prep import UploadPlan, build_upload_plan
from uploader.upload import UploadOptions, preview_file, upload_file

__all__ = [
    "GatewayClient",
    "LedgerWriter",
    "StorageChecker",
    "StorageReader",
    "UploadOptions",
    "UploadPlan",
    "build_upload_plan",
    "preview_file",
    "upload_file",
]
