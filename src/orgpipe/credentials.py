"""Secret resolvers used by the Decryptor stage.

A resolver turns the provider's opaque ``secrets`` blob into a usable
credential. boto3 clients are passed in at construction so nothing here
holds a process-wide SDK client.

- PlaintextResolver: the blob is already the credential
- KMSResolver: the blob is base64 ciphertext for ``kms.decrypt``
- SecretsManagerResolver: the blob is a Secrets Manager secret id
"""

import base64
import binascii
import logging
from typing import Any, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from orgpipe.errors import DecryptionFailed

logger = logging.getLogger(__name__)


class SecretResolver(Protocol):
    """Resolves an opaque secret blob into a credential."""

    name: str

    def resolve(self, blob: str) -> str: ...


def _client_error_text(e: ClientError) -> str:
    error_code = e.response.get("Error", {}).get("Code", "Unknown")
    error_message = e.response.get("Error", {}).get("Message", str(e))
    return f"{error_code} - {error_message}"


class PlaintextResolver:
    """Treats the secret blob as an already-usable credential."""

    name = "plaintext"

    def resolve(self, blob: str) -> str:
        return blob


class KMSResolver:
    """Decrypts base64-encoded KMS ciphertext.

    Args:
        client: boto3 KMS client
        encryption_context: Context the ciphertext was encrypted with, if any
    """

    name = "kms"

    def __init__(self, client: Any, encryption_context: dict[str, str] | None = None) -> None:
        self.client = client
        self.encryption_context = encryption_context or {}

    def resolve(self, blob: str) -> str:
        try:
            ciphertext = base64.b64decode(blob, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecryptionFailed(f"Secret is not valid base64 ciphertext: {e}") from e

        kwargs: dict[str, Any] = {"CiphertextBlob": ciphertext}
        if self.encryption_context:
            kwargs["EncryptionContext"] = self.encryption_context

        try:
            response = self.client.decrypt(**kwargs)
        except ClientError as e:
            raise DecryptionFailed(f"KMS decrypt failed: {_client_error_text(e)}") from e
        except BotoCoreError as e:
            raise DecryptionFailed(f"AWS service error during KMS decrypt: {e}") from e

        plaintext = response.get("Plaintext")
        if not plaintext:
            raise DecryptionFailed("KMS decrypt returned no plaintext")
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionFailed(f"KMS plaintext is not UTF-8 text: {e}") from e


class SecretsManagerResolver:
    """Looks the secret blob up as a Secrets Manager secret id.

    Args:
        client: boto3 Secrets Manager client
    """

    name = "secretsmanager"

    def __init__(self, client: Any) -> None:
        self.client = client

    def resolve(self, blob: str) -> str:
        try:
            response = self.client.get_secret_value(SecretId=blob)
        except ClientError as e:
            raise DecryptionFailed(
                f"Failed to retrieve secret {blob}: {_client_error_text(e)}"
            ) from e
        except BotoCoreError as e:
            raise DecryptionFailed(f"AWS service error while retrieving secret {blob}: {e}") from e

        secret_string = response.get("SecretString", "")
        if not secret_string:
            raise DecryptionFailed(f"Secret {blob} is empty")
        return secret_string


def build_resolver(backend: str, region: str) -> SecretResolver:
    """Create the resolver named by ``backend`` with its own boto3 client.

    Raises:
        ValueError: If the backend is unknown
    """
    logger.debug("Using %s secret resolver (region=%s)", backend, region)
    if backend == "plaintext":
        return PlaintextResolver()
    if backend == "kms":
        return KMSResolver(boto3.client("kms", region_name=region))
    if backend == "secretsmanager":
        return SecretsManagerResolver(boto3.client("secretsmanager", region_name=region))
    raise ValueError(f"Unknown secret backend: {backend}")
