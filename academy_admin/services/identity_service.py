"""Identity provider client for staff account management."""
import logging
from typing import Any, Dict, Optional

import requests

from academy_admin.exceptions import IdentityServiceError, ValidationError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class IdentityClient:
    """
    Authenticated client for the privileged user-management endpoint.

    Every call is a POST of ``{"action": ..., **fields}`` to the service URL
    with the backend key as bearer token.
    """

    def __init__(self, base_url: str, api_key: str, timeout: float = 10):
        if not base_url:
            raise IdentityServiceError("IDENTITY_SERVICE_URL is not configured")
        self.base_url = base_url
        self.timeout = timeout
        self.headers = {
            'Authorization': f'Bearer {api_key}',
            'Content-Type': 'application/json'
        }

    def _call(self, action: str, **fields) -> Dict[str, Any]:
        payload = {'action': action, **{k: v for k, v in fields.items() if v is not None}}
        logger.info(f"[IDENTITY] {action} {fields.get('email') or fields.get('user_id') or ''}")
        try:
            response = requests.post(self.base_url, json=payload, headers=self.headers, timeout=self.timeout)
            response.raise_for_status()
            return response.json() if response.content else {}
        except requests.HTTPError as e:
            detail = e.response.text if e.response is not None else str(e)
            logger.error(f"[IDENTITY] {action} rejected: {detail}")
            raise IdentityServiceError(f"Identity service rejected '{action}'", {'detail': detail}) from e
        except (requests.RequestException, ValueError) as e:
            logger.error(f"[IDENTITY] {action} failed: {e}")
            raise IdentityServiceError(f"Identity service unavailable for '{action}'") from e

    def create_user(self, email: str, password: str, full_name: str = None,
                    role: str = None, branch_id: str = None, tenant_id: str = None) -> Optional[str]:
        """Create an account and return its id."""
        data = self._call('create', email=email, password=password, full_name=full_name,
                          role=role, branch_id=branch_id, tenant_id=tenant_id)
        return data.get('user_id') or (data.get('user') or {}).get('id')

    def update_user(self, user_id: str, **changes) -> Dict[str, Any]:
        return self._call('update', user_id=user_id, **changes)

    def delete_user(self, user_id: str) -> Dict[str, Any]:
        return self._call('delete', user_id=user_id)

    def reset_password(self, user_id: str, new_password: str) -> Dict[str, Any]:
        if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                "Password too short",
                {'new_password': [f'Must be at least {MIN_PASSWORD_LENGTH} characters']},
            )
        return self._call('reset_password', user_id=user_id, new_password=new_password)


def get_identity_client(config) -> IdentityClient:
    """Build a client from app config."""
    return IdentityClient(
        config.get('IDENTITY_SERVICE_URL'),
        config.get('BACKEND_API_KEY'),
        config.get('IDENTITY_SERVICE_TIMEOUT', 10),
    )
