from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from dotenv import dotenv_values

DEFAULT_TOKEN_ENV = "NUTRITION_API_TOKEN"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenStore:
    """
    Bearer token storage for the API client:
    - environment variable wins (CI / local overrides)
    - then `<token_dir>/.env`
    - then a single token file `<token_dir>/<env_var>`, which is the only
      place `store()` / `clear()` touch
    """

    token_dir: Path
    env_var: str = DEFAULT_TOKEN_ENV

    @property
    def token_path(self) -> Path:
        return self.token_dir / self.env_var

    def _external_token(self) -> Tuple[Optional[str], Optional[str]]:
        """(token, source) from the env var or `.env`; sources `clear()` does not touch."""
        value = (os.getenv(self.env_var) or "").strip()
        if value:
            return value, "env"

        env_file = self.token_dir / ".env"
        if env_file.is_file():
            dotenv_value = (dotenv_values(env_file).get(self.env_var) or "").strip()
            if dotenv_value:
                return dotenv_value, "dotenv"
        return None, None

    def get(self) -> Optional[str]:
        value, _source = self._external_token()
        if value:
            return value

        if not self.token_path.is_file():
            return None
        return self.token_path.read_text(encoding="utf-8").strip() or None

    def store(self, token: str) -> None:
        token = token.strip()
        if not token:
            raise ValueError("token must be non-empty")
        self.token_dir.mkdir(parents=True, exist_ok=True)
        # owner-only from creation; O_CREAT mode does not apply to an existing file
        fd = os.open(self.token_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            os.fchmod(fh.fileno(), 0o600)
            fh.write(token)
        logger.info("token_stored", extra={"event": "token_stored"})

    def clear(self) -> None:
        self.token_path.unlink(missing_ok=True)
        logger.info("token_cleared", extra={"event": "token_cleared"})

        _value, source = self._external_token()
        if source is not None:
            logger.warning(
                "token_clear_incomplete",
                extra={"event": "token_clear_incomplete", "source": source, "env_var": self.env_var},
            )


def default_token_dir() -> Path:
    """
    Default location for the client token:
      $NUTRITION_CLIENT_SECRETS_DIR, else ~/.nutrition_client
    """
    override = (os.getenv("NUTRITION_CLIENT_SECRETS_DIR") or "").strip()
    if override:
        return Path(override).expanduser().resolve()
    return (Path.home() / ".nutrition_client").resolve()


def default_token_store() -> TokenStore:
    return TokenStore(token_dir=default_token_dir())
