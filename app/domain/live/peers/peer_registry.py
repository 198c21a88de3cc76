"""Broadcaster-side registry of peer connections keyed by viewer id."""

from collections.abc import Iterator

from loguru import logger

from .rtc import PeerLink


class PeerRegistry:
    """Owns one PeerLink per viewer.

    Links dropped from the registry are closed by it, so a link is never
    left open without an owner.
    """

    def __init__(self):
        self._links: dict[str, PeerLink] = {}

    async def insert(self, viewer_id: str, link: PeerLink) -> None:
        """Register a link, closing any link previously held for the viewer."""
        previous = self._links.get(viewer_id)
        self._links[viewer_id] = link
        if previous is not None and previous is not link:
            logger.info(f"Replacing peer connection for viewer {viewer_id}")
            await previous.close()

    async def remove(self, viewer_id: str) -> bool:
        """Close and drop the viewer's link. Returns False if there was none."""
        link = self._links.pop(viewer_id, None)
        if link is None:
            return False

        await link.close()
        return True

    def get(self, viewer_id: str) -> PeerLink | None:
        return self._links.get(viewer_id)

    def ids(self) -> list[str]:
        return list(self._links)

    async def close_all(self) -> None:
        links, self._links = self._links, {}
        for viewer_id, link in links.items():
            logger.debug(f"Closing peer connection for viewer {viewer_id}")
            await link.close()

    def __contains__(self, viewer_id: object) -> bool:
        return viewer_id in self._links

    def __len__(self) -> int:
        return len(self._links)

    def __iter__(self) -> Iterator[str]:
        return iter(self.ids())
