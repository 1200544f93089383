"""CAPTCHA challenges scoped by purpose, single-use and short-lived."""

import json
import logging
import secrets
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol
from xml.sax.saxutils import escape

import redis

from stayease.config import Settings
from stayease.services.auth import is_expired, utcnow

logger = logging.getLogger(__name__)

CAPTCHA_LENGTH = 6
DEFAULT_PURPOSE = "general"

LOWERCASE = "abcdefghijklmnopqrstuvwxyz"
UPPERCASE = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
DIGITS = "0123456789"
SYMBOLS = "@#$%&*?!"
ALL_CHARACTERS = LOWERCASE + UPPERCASE + DIGITS + SYMBOLS


@dataclass(frozen=True)
class CaptchaChallenge:
    """Expected answer for one issued challenge."""

    text: str
    purpose: str
    expires_at: datetime

    def to_json(self) -> str:
        return json.dumps(
            {"text": self.text, "purpose": self.purpose, "expires_at": self.expires_at.isoformat()}
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> "CaptchaChallenge":
        data = json.loads(raw)
        return cls(
            text=data["text"],
            purpose=data["purpose"],
            expires_at=datetime.fromisoformat(data["expires_at"]),
        )


class ChallengeStore(Protocol):
    """Keyed storage for outstanding challenges.

    `take` must remove the entry and return it in one atomic step, so that of
    two concurrent verifications for the same id at most one sees it.
    """

    def save(self, challenge_id: str, challenge: CaptchaChallenge, ttl_seconds: int) -> None: ...

    def take(self, challenge_id: str) -> CaptchaChallenge | None: ...

    def clear(self) -> None: ...


class InMemoryChallengeStore:
    """Process-local store. Only valid for a single-process deployment."""

    def __init__(self) -> None:
        self._challenges: dict[str, CaptchaChallenge] = {}
        self._lock = threading.Lock()

    def _sweep(self) -> None:
        now = utcnow()
        expired = [key for key, value in self._challenges.items() if is_expired(value.expires_at, now)]
        for key in expired:
            del self._challenges[key]

    def save(self, challenge_id: str, challenge: CaptchaChallenge, ttl_seconds: int) -> None:
        with self._lock:
            self._sweep()
            self._challenges[challenge_id] = challenge

    def take(self, challenge_id: str) -> CaptchaChallenge | None:
        with self._lock:
            self._sweep()
            return self._challenges.pop(challenge_id, None)

    def clear(self) -> None:
        with self._lock:
            self._challenges.clear()

    def __len__(self) -> int:
        return len(self._challenges)


class RedisChallengeStore:
    """Shared store for multi-instance deployments; Redis expires entries itself."""

    key_prefix = "captcha:"

    def __init__(self, client: redis.Redis) -> None:
        self._redis = client

    def _key(self, challenge_id: str) -> str:
        return f"{self.key_prefix}{challenge_id}"

    def save(self, challenge_id: str, challenge: CaptchaChallenge, ttl_seconds: int) -> None:
        self._redis.set(self._key(challenge_id), challenge.to_json(), ex=max(ttl_seconds, 1))

    def take(self, challenge_id: str) -> CaptchaChallenge | None:
        pipe = self._redis.pipeline(transaction=True)
        pipe.get(self._key(challenge_id))
        pipe.delete(self._key(challenge_id))
        raw, _ = pipe.execute()
        if raw is None:
            return None
        try:
            return CaptchaChallenge.from_json(raw)
        except (ValueError, KeyError) as e:
            logger.warning(f"Discarding malformed captcha entry {challenge_id}: {e}")
            return None

    def clear(self) -> None:
        # Entries expire on their own; nothing is owned exclusively by this process
        pass


def build_challenge_store(settings: Settings) -> ChallengeStore:
    """Create the configured challenge store backend."""
    if settings.captcha_backend == "redis":
        logger.info("Using Redis captcha store")
        return RedisChallengeStore(redis.from_url(settings.redis_url))
    logger.info("Using in-memory captcha store")
    return InMemoryChallengeStore()


def generate_captcha_text(length: int = CAPTCHA_LENGTH) -> str:
    """Random text with at least one lowercase, uppercase, digit and symbol."""
    chars = [
        secrets.choice(LOWERCASE),
        secrets.choice(UPPERCASE),
        secrets.choice(DIGITS),
        secrets.choice(SYMBOLS),
    ]
    while len(chars) < length:
        chars.append(secrets.choice(ALL_CHARACTERS))
    # Fisher-Yates with a CSPRNG
    for i in range(len(chars) - 1, 0, -1):
        j = secrets.randbelow(i + 1)
        chars[i], chars[j] = chars[j], chars[i]
    return "".join(chars)


def render_captcha_svg(text: str) -> str:
    """Inline SVG image showing the challenge text over a few noise lines."""
    noise = []
    for index in range(6):
        x1 = 10 + index * 20
        y1 = 5 + secrets.randbelow(35)
        x2 = x1 + 20
        y2 = 5 + secrets.randbelow(35)
        noise.append(
            f'<line x1="{x1}" y1="{y1}" x2="{x2}" y2="{y2}" stroke="#d3c4ae" stroke-width="1" />'
        )

    return (
        '<svg xmlns="http://www.w3.org/2000/svg" width="160" height="48" viewBox="0 0 160 48">'
        '<rect width="100%" height="100%" fill="#fffaf3" rx="8" />'
        f"{''.join(noise)}"
        '<text x="12" y="32" font-size="24" font-family="monospace" fill="#7d3b12" '
        f'letter-spacing="2">{escape(text)}</text>'
        "</svg>"
    )


class CaptchaService:
    """Issues and verifies purpose-scoped CAPTCHA challenges."""

    def __init__(self, store: ChallengeStore, ttl_seconds: int = 300):
        self.store = store
        self.ttl_seconds = ttl_seconds

    def issue(self, purpose: str = DEFAULT_PURPOSE) -> dict:
        """
        Create a challenge for one purpose.

        Returns:
            {"captcha_id": str, "captcha_svg": str, "expires_in_seconds": int}
        """
        challenge_id = str(uuid.uuid4())
        text = generate_captcha_text()
        challenge = CaptchaChallenge(
            text=text,
            purpose=purpose,
            expires_at=utcnow() + timedelta(seconds=self.ttl_seconds),
        )
        self.store.save(challenge_id, challenge, self.ttl_seconds)
        logger.debug(f"Issued captcha {challenge_id} for {purpose}")
        return {
            "captcha_id": challenge_id,
            "captcha_svg": render_captcha_svg(text),
            "expires_in_seconds": self.ttl_seconds,
        }

    def verify(self, captcha_id: str | None, captcha_text: str | None, purpose: str = DEFAULT_PURPOSE) -> bool:
        """Check an answer. The challenge is consumed whatever the outcome."""
        if not captcha_id:
            return False
        challenge = self.store.take(captcha_id)
        if challenge is None:
            return False
        if challenge.purpose != purpose:
            logger.info(f"Captcha {captcha_id} issued for {challenge.purpose}, used for {purpose}")
            return False
        if is_expired(challenge.expires_at):
            return False
        return secrets.compare_digest(str(captcha_text or "").encode(), challenge.text.encode())
