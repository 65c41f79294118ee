"""Apply a local edit to a feed before the server confirms it."""
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

from services.infinite_collection import InfiniteCollection

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class OptimisticUpdate(Generic[T, R]):
    """
    Runs a mutation against a feed with an optimistic local edit.

    Sequence: drop in-flight feed requests, snapshot the loaded pages,
    apply `local_update` to every item, run the mutation. If the mutation
    raises, the snapshot is restored and the error re-raised. Either way
    the feed is refetched afterwards so it matches the server.
    """

    def __init__(
        self,
        collection: InfiniteCollection[T],
        mutation: Callable[[], Awaitable[R]],
        local_update: Callable[[T], T] | None = None,
    ) -> None:
        self._collection = collection
        self._mutation = mutation
        self._local_update = local_update

    async def run(self) -> R:
        """
        Apply the local edit and run the mutation.

        Raises:
            Exception: Whatever the mutation raised, after rolling back.
        """
        self._collection.cancel_pending()
        previous = self._collection.snapshot()
        if self._local_update is not None:
            self._collection.map_items(self._local_update)
        try:
            return await self._mutation()
        except Exception as e:
            logger.warning("optimistic_update_rolled_back", extra={"error": str(e)})
            self._collection.restore(previous)
            raise
        finally:
            await self._collection.refetch()
