"""Backend push updates as a closed set of tagged variants on one inbound channel."""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple, Union

from telethon.tl import types

from common.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ShortMessage:
    """A private message delivered in compact form."""
    message_id: int
    user_id: int
    text: str


@dataclass(frozen=True)
class ShortChatMessage:
    """A group message delivered in compact form."""
    message_id: int
    chat_id: int
    from_id: int
    text: str


@dataclass(frozen=True)
class Short:
    """A single update wrapped without sequence information."""
    update: Any
    date: Any = None


@dataclass(frozen=True)
class Batch:
    """A sequenced batch of updates."""
    updates: Tuple[Any, ...] = field(default_factory=tuple)
    seq: int = 0


@dataclass(frozen=True)
class TooLong:
    """The backend dropped updates; state must be re-fetched."""


BackendUpdate = Union[ShortMessage, ShortChatMessage, Short, Batch, TooLong]


def classify_update(raw: Any) -> Optional[BackendUpdate]:
    """
    Map a raw Telethon update container to its tagged variant.

    Returns:
        The variant, or None for shapes the relay does not handle
    """
    if isinstance(raw, types.UpdateShortMessage):
        return ShortMessage(message_id=raw.id, user_id=raw.user_id, text=raw.message)
    if isinstance(raw, types.UpdateShortChatMessage):
        return ShortChatMessage(
            message_id=raw.id,
            chat_id=raw.chat_id,
            from_id=raw.from_id,
            text=raw.message,
        )
    if isinstance(raw, types.UpdateShort):
        return Short(update=raw.update, date=raw.date)
    if isinstance(raw, (types.Updates, types.UpdatesCombined)):
        return Batch(updates=tuple(raw.updates), seq=raw.seq)
    if isinstance(raw, types.UpdatesTooLong):
        return TooLong()

    logger.debug(f"Ignoring unrecognized update: {type(raw).__name__}")
    return None


def describe_update(update: BackendUpdate) -> str:
    if isinstance(update, ShortMessage):
        return f"short message {update.message_id} from user {update.user_id}"
    if isinstance(update, ShortChatMessage):
        return f"short chat message {update.message_id} in chat {update.chat_id}"
    if isinstance(update, Short):
        return f"single update {type(update.update).__name__}"
    if isinstance(update, Batch):
        return f"batch of {len(update.updates)} updates (seq={update.seq})"
    if isinstance(update, TooLong):
        return "updates too long, state gap"
    raise TypeError(f"Unknown update variant: {type(update).__name__}")


class UpdateChannel:
    """
    Single inbound queue of classified backend updates with one consumer loop.
    """

    def __init__(self, maxsize: int = 1000):
        self._queue: "asyncio.Queue[BackendUpdate]" = asyncio.Queue(maxsize=maxsize)
        self._running = False

    def publish_raw(self, raw: Any) -> Optional[BackendUpdate]:
        update = classify_update(raw)
        if update is not None:
            self.publish(update)
        return update

    def publish(self, update: BackendUpdate) -> None:
        try:
            self._queue.put_nowait(update)
        except asyncio.QueueFull:
            logger.warning(f"Update channel full, dropping {describe_update(update)}")

    async def get(self) -> BackendUpdate:
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()

    async def run(self) -> None:
        """
        Consume updates until stopped or cancelled.
        """
        self._running = True
        logger.info("Update consumer started")
        try:
            while self._running:
                update = await self._queue.get()
                try:
                    self.handle(update)
                except Exception as e:
                    logger.error(f"Update handling error: {e}", exc_info=True)
                finally:
                    self._queue.task_done()
        finally:
            self._running = False
            logger.info("Update consumer stopped")

    def handle(self, update: BackendUpdate) -> None:
        if isinstance(update, TooLong):
            logger.warning("Backend reported an update gap")
            return
        logger.debug(f"Backend update: {describe_update(update)}")

    def stop(self) -> None:
        self._running = False
