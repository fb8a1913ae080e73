"""
S3 blob store for workshop images, resource files and assignment uploads.
Generates presigned URLs for private bucket access.

Blob ids are the S3 object keys ('media/<uuid>').
"""
import uuid
from typing import Dict, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

from workshop_engine.config import config
from workshop_engine.logging import logger

_s3_client = None


def get_s3_client():
    """Get or create the S3 client (s3v4 signatures for presigned URLs)."""
    global _s3_client
    if _s3_client is None:
        _s3_client = boto3.client(
            's3',
            region_name=config.AWS_REGION,
            config=BotoConfig(signature_version='s3v4')
        )
    return _s3_client


def reset_client() -> None:
    global _s3_client
    _s3_client = None


def _is_missing(error: ClientError) -> bool:
    return error.response['Error']['Code'] in ('404', 'NoSuchKey', 'NotFound')


def generate_upload_url() -> Dict[str, str]:
    """
    Create a presigned PUT URL for a new blob.

    Returns:
        {'uploadUrl': ..., 'blobId': ...}; the client uploads to uploadUrl
        and then refers to the blob by blobId.
    """
    blob_id = f"media/{uuid.uuid4()}"
    url = get_s3_client().generate_presigned_url(
        'put_object',
        Params={'Bucket': config.MEDIA_BUCKET, 'Key': blob_id},
        ExpiresIn=config.UPLOAD_URL_EXPIRATION
    )
    logger.info(f"Generated upload URL for {blob_id}")
    return {'uploadUrl': url, 'blobId': blob_id}


def get_url(blob_id: str) -> Optional[str]:
    """Presigned download URL, or None when the blob does not exist."""
    if not blob_id:
        return None
    if get_metadata(blob_id) is None:
        return None
    return get_s3_client().generate_presigned_url(
        'get_object',
        Params={'Bucket': config.MEDIA_BUCKET, 'Key': blob_id},
        ExpiresIn=config.DOWNLOAD_URL_EXPIRATION
    )


def get_metadata(blob_id: str) -> Optional[Dict[str, int]]:
    """Return {'size': bytes} for a blob, or None when it does not exist."""
    try:
        response = get_s3_client().head_object(Bucket=config.MEDIA_BUCKET, Key=blob_id)
    except ClientError as e:
        if _is_missing(e):
            return None
        raise
    return {'size': int(response['ContentLength'])}


def delete(blob_id: str) -> None:
    """Delete a blob. Deleting a missing blob is not an error."""
    get_s3_client().delete_object(Bucket=config.MEDIA_BUCKET, Key=blob_id)
    logger.info(f"Deleted blob {blob_id}")
