"""Token record and its on-disk storage."""

import json
import logging
import os
import stat
import time
from contextlib import suppress
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Self

from concept2_mcp.auth.exceptions import PersistenceError

logger = logging.getLogger(__name__)

STATIC_TOKEN_LIFETIME_MS = 365 * 24 * 60 * 60 * 1000


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def _to_int(value: Any, field: str) -> int:
    try:
        return int(value)
    except OverflowError as e:
        raise ValueError(f"{field} is not a finite number") from e


@dataclass(frozen=True)
class TokenRecord:
    """Persisted OAuth2 credential.

    Records are immutable: refresh and exchange replace the whole record.
    """

    access_token: str
    refresh_token: str
    expires_at: int  # Unix timestamp in milliseconds
    token_type: str = "Bearer"
    scope: str = ""

    def is_expired(self, now: int, buffer_ms: int = 0) -> bool:
        """Check if the token expires within ``buffer_ms`` of ``now``."""
        return now >= self.expires_at - buffer_ms

    def seconds_remaining(self, now: int) -> int:
        return max(0, (self.expires_at - now) // 1000)

    def has_refresh_token(self) -> bool:
        return bool(self.refresh_token)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create from dictionary.

        Raises:
            KeyError, TypeError, ValueError: If the data does not describe a token
        """
        access_token = data["access_token"]
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("access_token must be a non-empty string")
        return cls(
            access_token=access_token,
            refresh_token=str(data.get("refresh_token") or ""),
            expires_at=_to_int(data["expires_at"], "expires_at"),
            token_type=str(data.get("token_type") or "Bearer"),
            scope=str(data.get("scope") or ""),
        )

    @classmethod
    def from_token_response(cls, data: dict, now: int) -> Self:
        """Build a record from a token endpoint response body.

        Args:
            data: Parsed JSON with access_token, refresh_token and expires_in
            now: Current time in milliseconds

        Raises:
            KeyError, TypeError, ValueError: If the response is unusable
        """
        access_token = data["access_token"]
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("No access_token in token response")
        expires_in = _to_int(data["expires_in"], "expires_in")
        return cls(
            access_token=access_token,
            refresh_token=str(data.get("refresh_token") or ""),
            expires_at=now + expires_in * 1000,
            token_type=data.get("token_type") or "Bearer",
            scope=data.get("scope") or "",
        )

    @classmethod
    def static(cls, access_token: str, scope: str, now: int) -> Self:
        """Synthetic record for an out-of-band token; never treated as expired."""
        return cls(
            access_token=access_token,
            refresh_token="",
            expires_at=now + STATIC_TOKEN_LIFETIME_MS,
            token_type="Bearer",
            scope=scope,
        )


class TokenStore:
    """Single-record JSON token file with owner-only permissions."""

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()

    def load(self) -> TokenRecord | None:
        """Load the stored token.

        Any read or parse failure is logged and reported as "no token".
        """
        try:
            return self._read()
        except PersistenceError as e:
            logger.error(f"Failed to load tokens from {self.path}: {e}")
            return None

    def save(self, record: TokenRecord) -> bool:
        """Write the token, replacing any previous file atomically.

        Returns:
            True if the token was written, False otherwise
        """
        try:
            self._write(record)
        except PersistenceError as e:
            logger.error(f"Failed to save tokens to {self.path}: {e}")
            return False
        logger.info(f"Saved OAuth2 tokens to {self.path}")
        return True

    def delete(self) -> None:
        """Remove the token file. A missing file is not an error."""
        try:
            self.path.unlink()
            logger.debug(f"Deleted token file {self.path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to delete token file {self.path}: {e}")

    def _read(self) -> TokenRecord | None:
        if not self.path.exists():
            logger.debug("No existing token file found")
            return None
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            return TokenRecord.from_dict(data)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(str(e)) from e
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Malformed token file: {e}") from e

    def _write(self, record: TokenRecord) -> None:
        temp_file = self.path.with_name(f".{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(temp_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record.to_dict(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            self._restrict_permissions(temp_file)
            # Atomic rename
            temp_file.replace(self.path)
        except OSError as e:
            with suppress(OSError):
                temp_file.unlink()
            raise PersistenceError(str(e)) from e

    @staticmethod
    def _restrict_permissions(path: Path) -> None:
        try:
            os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)  # 0600
        except OSError as e:
            logger.warning(f"Could not restrict permissions on {path}: {e}")
