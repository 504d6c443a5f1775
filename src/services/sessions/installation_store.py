from typing import Optional

from fastapi import Depends
from supabase import Client

from src.core.supabase_client import get_supabase_client
from src.models.schemas.installation import InstallationRecord
from src.utils.exception import AuthenticationError, UpstreamError
from src.utils.logging.otel_logger import logger

PROFILE_COLUMNS = "installation_id, gh_user_login, gh_user_id, gh_avatar_url, gh_repo_name"


class SupabaseInstallationStore:
    """Installation bindings kept on the platform user's profile row."""

    def __init__(self, supabase: Client = Depends(get_supabase_client)):
        self.supabase = supabase

    def get_user_id(self, access_token: str) -> str:
        """
        Resolve a platform access token to the user id.

        Raises:
            AuthenticationError: If the platform does not accept the token
        """
        try:
            auth_response = self.supabase.auth.get_user(access_token)
        except Exception as e:
            logger.error(f"Supabase rejected access token: {e}")
            raise AuthenticationError("Could not validate credentials")

        user = getattr(auth_response, "user", None) if auth_response else None
        if not user:
            logger.error("No user found in Supabase auth response")
            raise AuthenticationError("Could not validate credentials")
        return str(user.id)

    def lookup_installation_for_user(self, user_id: str) -> Optional[InstallationRecord]:
        """Return the installation bound to the user's profile, or None."""
        try:
            response = (
                self.supabase.table("profiles")
                .select(PROFILE_COLUMNS)
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to read profile for user {user_id}: {e}")
            raise UpstreamError("Failed to read installation record")

        rows = response.data or []
        if not rows or not rows[0].get("installation_id"):
            logger.info(f"No installation recorded for user {user_id}")
            return None

        row = rows[0]
        return InstallationRecord(
            installation_id=str(row["installation_id"]),
            gh_user_login=row.get("gh_user_login") or "",
            gh_user_id=row.get("gh_user_id") or 0,
            gh_avatar_url=row.get("gh_avatar_url"),
            gh_repo_name=row.get("gh_repo_name"),
        )

    def save_installation(self, user_id: str, record: InstallationRecord) -> None:
        try:
            self.supabase.rpc(
                "insert_gh_installation",
                {
                    "profile_id": user_id,
                    "gh_installation_id": record.installation_id,
                    "gh_user_login": record.gh_user_login,
                    "gh_user_id": record.gh_user_id,
                    "gh_avatar_url": record.gh_avatar_url,
                    "gh_repo_name": record.gh_repo_name,
                },
            ).execute()
        except Exception as e:
            logger.error(f"Failed to store installation for user {user_id}: {e}")
            raise UpstreamError("Failed to store installation record")
        logger.info(f"Stored installation {record.installation_id} for user {user_id}")
