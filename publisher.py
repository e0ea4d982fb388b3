"""Publish sinks for generated reports."""

import asyncio
import logging
import sqlite3
from dataclasses import dataclass
from typing import Optional, Protocol

from db import now_utc

logger = logging.getLogger(__name__)

TELEGRAM_MAX_CHARS = 4096


@dataclass
class Artifact:
    title: str
    body: str
    language: str
    date: str  # YYYY-MM-DD

    @property
    def text(self) -> str:
        return f"{self.title}\n\n{self.body}"


class PublishSink(Protocol):
    def publish(self, artifact: Artifact) -> bool:
        """Publish or update the artifact for (date, language)."""


class SqliteArtifactSink:
    """Stores artifacts in the catalog database; re-publishing updates in place."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get_external_id(self, date: str, language: str) -> Optional[str]:
        row = self.conn.execute(
            "SELECT external_id FROM artifacts WHERE date = ? AND language = ?",
            (date, language),
        ).fetchone()
        return row["external_id"] if row else None

    def publish(self, artifact: Artifact, external_id: Optional[str] = None) -> bool:
        self.conn.execute(
            """INSERT INTO artifacts (date, language, title, body, external_id, published_at)
               VALUES (?, ?, ?, ?, ?, ?)
               ON CONFLICT(date, language) DO UPDATE SET
                   title = excluded.title,
                   body = excluded.body,
                   external_id = COALESCE(excluded.external_id, artifacts.external_id),
                   published_at = excluded.published_at""",
            (
                artifact.date, artifact.language, artifact.title, artifact.body,
                external_id, now_utc().isoformat(),
            ),
        )
        self.conn.commit()
        return True


class TelegramSink:
    """Posts each artifact to a Telegram chat.

    The first publish for a (date, language) sends a message; later publishes
    of the same key edit that message.
    """

    def __init__(self, bot_token: str, chat_id: str, archive: SqliteArtifactSink, bot=None):
        if bot is None:
            from telegram import Bot
            bot = Bot(token=bot_token)
        self.bot = bot
        self.chat_id = chat_id
        self.archive = archive

    def publish(self, artifact: Artifact) -> bool:
        from telegram.error import BadRequest, TelegramError

        text = artifact.text
        if len(text) > TELEGRAM_MAX_CHARS:
            logger.warning(
                f"[telegram] {artifact.date}/{artifact.language} is {len(text)} chars, "
                f"truncated to {TELEGRAM_MAX_CHARS}"
            )
            text = text[:TELEGRAM_MAX_CHARS]
        message_id = self.archive.get_external_id(artifact.date, artifact.language)
        try:
            new_id = asyncio.run(self._send(text, message_id))
        except BadRequest as e:
            if "not modified" not in str(e).lower():
                logger.error(f"[telegram] Failed to publish {artifact.date}/{artifact.language}: {e}")
                return False
            new_id = message_id
        except TelegramError as e:
            logger.error(f"[telegram] Failed to publish {artifact.date}/{artifact.language}: {e}")
            return False
        return self.archive.publish(artifact, external_id=str(new_id) if new_id else None)

    async def _send(self, text: str, message_id: Optional[str]):
        async with self.bot:
            if message_id:
                await self.bot.edit_message_text(
                    chat_id=self.chat_id, message_id=int(message_id), text=text,
                )
                return message_id
            message = await self.bot.send_message(chat_id=self.chat_id, text=text)
            return message.message_id


def publish_report(sink: PublishSink, report: dict[str, dict[str, str]], date: str) -> bool:
    """Publish every language of a report. True only if all succeeded."""
    ok = True
    for language, content in report.items():
        artifact = Artifact(
            title=content["title"], body=content["body"], language=language, date=date,
        )
        if sink.publish(artifact):
            logger.info(f"[publish] {date}/{language}: {artifact.title}")
        else:
            ok = False
    return ok
