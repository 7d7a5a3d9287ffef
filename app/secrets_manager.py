import json
import os
import time
import logging
from typing import Any, Dict, Optional

import boto3

logger = logging.getLogger(__name__)

class SecretsManager:
    """
    Reads production credentials (database login, SendGrid key, token
    signing secret) from AWS Secrets Manager.

    Values are cached per secret id for a few minutes so that rotation is
    picked up without a restart. When a refresh fails and a stale value is
    still cached, the stale value is served.
    """

    CACHE_TTL_SECONDS = 300

    def __init__(self, region_name: Optional[str] = None):
        self.region_name = region_name or os.environ.get('AWS_REGION', 'us-east-1')
        self._client = None
        self._values: Dict[str, str] = {}
        self._fetched_at: Dict[str, float] = {}

    @property
    def client(self):
        """Secrets Manager client, created on first use"""
        if self._client is None:
            session = boto3.session.Session()
            self._client = session.client(
                service_name='secretsmanager',
                region_name=self.region_name
            )
        return self._client

    def _is_fresh(self, secret_id: str) -> bool:
        fetched_at = self._fetched_at.get(secret_id)
        return fetched_at is not None and time.time() - fetched_at < self.CACHE_TTL_SECONDS

    def clear_cache(self):
        """Drop every cached value so the next read hits AWS."""
        logger.info("Clearing secrets cache")
        self._values.clear()
        self._fetched_at.clear()

    def get_secret(self, secret_id: str) -> str:
        """
        Get a secret string, using the cache while it is fresh.

        Args:
            secret_id: The secret ID or ARN

        Returns:
            The secret value as a string
        """
        if self._is_fresh(secret_id):
            logger.debug(f"Returning cached secret for {secret_id}")
            return self._values[secret_id]

        logger.info(f"Fetching fresh secret for {secret_id}")
        try:
            response = self.client.get_secret_value(SecretId=secret_id)
        except Exception as e:
            if secret_id in self._values:
                logger.warning(f"Fresh secret fetch failed for {secret_id}, using stale cache: {e}")
                return self._values[secret_id]
            logger.error(f"Failed to get secret {secret_id}: {e}")
            raise

        value = response.get('SecretString') or response.get('SecretBinary')
        self._values[secret_id] = value
        self._fetched_at[secret_id] = time.time()
        return value

    def get_json_secret(self, secret_id: str) -> Dict[str, Any]:
        return json.loads(self.get_secret(secret_id))

    def get_db_credentials(self) -> Dict[str, str]:
        """
        PostgreSQL credentials. RDS-managed secrets carry username, password,
        host, port and dbname.
        """
        return self.get_json_secret(os.environ.get('DATABASE_SECRETS_NAME', 'qr-connect/rds-credentials'))

    def get_api_key(self, service_name: str) -> str:
        """Get API key for a specific service"""
        return self.get_secret(f'{service_name}-api-key')
