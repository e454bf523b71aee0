"""Per-keyword asset task tracker.

Each visual keyword from the script gets an independent item with its own
source selection, last preview and status::

    idle -> searching  -> idle
    idle -> downloading -> downloaded   (permanent)
    idle -> downloading -> idle         (failure)

Keywords never block each other: any number of previews and downloads may
be in flight at once, bounded only by ``assets.max_concurrency`` when set.
Per keyword there is at most one in-flight search and one in-flight
download. A preview and a download for the same keyword may overlap; when
an operation settles, the item status is derived from whatever is still in
flight for that keyword.

Successful single downloads are appended to the aggregate ``AssetsData``
artifact written to the workflow controller. ``download_all`` writes the
same slot with one batched result, overwriting rather than merging.
"""

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from vidconsole.config import settings
from vidconsole.orchestrator.state import ArtifactKind
from vidconsole.orchestrator.workflow import WorkflowController
from vidconsole.schemas import (
    AssetPreview,
    AssetsData,
    AssetSearchResult,
    DownloadedAsset,
    VideoAsset,
    VideoScript,
)
from vidconsole.services.engine_client import EngineClient, EngineError, unwrap

logger = logging.getLogger(__name__)


class AssetStatus(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    DOWNLOADING = "downloading"
    DOWNLOADED = "downloaded"


@dataclass
class AssetItemState:
    """Tracked state of one keyword."""

    keyword: str
    source: str
    status: AssetStatus = AssetStatus.IDLE
    preview: Optional[AssetPreview] = None
    asset: Optional[DownloadedAsset] = None

    @property
    def downloaded(self) -> bool:
        return self.status == AssetStatus.DOWNLOADED

    def to_dict(self) -> dict:
        return {
            "keyword": self.keyword,
            "source": self.source,
            "status": self.status.value,
            "preview": self.preview.model_dump() if self.preview else None,
            "asset": self.asset.model_dump() if self.asset else None,
        }


@dataclass
class KeywordOutcome:
    """What one preview or download call did for its own keyword.

    ``rejected`` means no request was issued (already downloaded or already
    in flight). ``error`` is this call's failure only, never another
    keyword's.
    """

    keyword: str
    result: Any = None
    error: Optional[str] = None
    rejected: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.rejected


class AssetTaskTracker:
    """Keyed store of independent per-keyword preview/download tasks."""

    def __init__(
        self,
        client: EngineClient,
        controller: Optional[WorkflowController] = None,
        *,
        default_source: Optional[str] = None,
        max_concurrency: Optional[int] = None,
        session_id: Optional[str] = None,
    ):
        self.client = client
        self.controller = controller
        self.default_source = default_source or settings.assets.default_source
        limit = max_concurrency if max_concurrency is not None else settings.assets.max_concurrency
        self._semaphore = asyncio.Semaphore(limit) if limit else None
        self.session_id = session_id
        self.keywords: list[str] = []
        self.items: dict[str, AssetItemState] = {}
        self.error: Optional[str] = None
        self._searching: set[str] = set()
        self._downloading: set[str] = set()
        # Completion order, as appended to the aggregate artifact
        self._downloaded: list[VideoAsset] = []
        self._epoch = 0

    # --- keyword set ---------------------------------------------------------

    def load_keywords(self, keywords: Iterable[str]) -> None:
        """Start over with a new positional keyword list.

        One entry per script segment; repeated keywords share one item.
        Everything tracked for the previous list is dropped, and operations
        still in flight for it settle without touching the new items.
        """
        self._epoch += 1
        self.keywords = [k for k in keywords if k and k.strip()]
        self.items = {
            keyword: AssetItemState(keyword=keyword, source=self.default_source)
            for keyword in dict.fromkeys(self.keywords)
        }
        self._searching = set()
        self._downloading = set()
        self._downloaded = []
        self.error = None
        logger.info("Tracking %d keywords (%d unique)", len(self.keywords), len(self.items))

    def load_script(self, script: VideoScript) -> None:
        self.load_keywords(script.keywords())

    def item(self, keyword: str) -> AssetItemState:
        """Item for ``keyword``, created idle if it is not tracked yet."""
        item = self.items.get(keyword)
        if item is None:
            item = AssetItemState(keyword=keyword, source=self.default_source)
            self.items[keyword] = item
        return item

    def status(self, keyword: str) -> AssetStatus:
        item = self.items.get(keyword)
        return item.status if item else AssetStatus.IDLE

    def select_source(self, keyword: str, source: str) -> bool:
        """Choose the footage source for ``keyword``; frozen once downloaded."""
        item = self.item(keyword)
        if item.downloaded:
            return False
        item.source = source
        return True

    @property
    def downloaded_assets(self) -> list[VideoAsset]:
        return list(self._downloaded)

    def in_flight(self) -> dict[str, list[str]]:
        return {
            "searching": sorted(self._searching),
            "downloading": sorted(self._downloading),
        }

    # --- helpers -------------------------------------------------------------

    def _slot(self):
        return self._semaphore if self._semaphore is not None else contextlib.nullcontext()

    def _settle(self, item: AssetItemState) -> None:
        if item.downloaded:
            return
        if item.keyword in self._downloading:
            item.status = AssetStatus.DOWNLOADING
        elif item.keyword in self._searching:
            item.status = AssetStatus.SEARCHING
        else:
            item.status = AssetStatus.IDLE

    # --- operations ----------------------------------------------------------

    async def search(self, keyword: str, source: Optional[str] = None) -> AssetSearchResult:
        """Ad-hoc lookup not bound to a tracked item.

        Raises:
            EngineError: If the lookup fails
        """
        async with self._slot():
            return unwrap(await self.client.search_assets(keyword, source or self.default_source))

    async def preview(self, keyword: str, source: Optional[str] = None) -> Optional[AssetPreview]:
        """Look up a preview clip for ``keyword``.

        Returns:
            The stored preview, or None if rejected, failed or empty
        """
        return (await self.preview_outcome(keyword, source)).result

    async def preview_outcome(self, keyword: str, source: Optional[str] = None) -> KeywordOutcome:
        """Look up a preview clip and report what happened to this call.

        No-op for a keyword that is downloaded or already being searched.
        A failure is returned on the outcome and also kept as the tracker's
        most recent ``error``, never on the item.
        """
        item = self.item(keyword)
        if item.downloaded or keyword in self._searching:
            logger.debug("Preview for %r rejected (status=%s)", keyword, item.status.value)
            return KeywordOutcome(keyword, rejected=True)
        if source:
            item.source = source

        searching = self._searching
        searching.add(keyword)
        item.status = AssetStatus.SEARCHING
        try:
            async with self._slot():
                response = await self.client.search_assets(keyword, item.source)
            result = unwrap(response)
        except EngineError as e:
            message = f"Preview for '{keyword}' failed: {e}"
            self.error = message
            logger.warning(message)
            return KeywordOutcome(keyword, error=message)
        finally:
            searching.discard(keyword)
            self._settle(item)

        if result.preview is not None:
            item.preview = result.preview
        return KeywordOutcome(keyword, result=result.preview)

    async def download(self, keyword: str, source: Optional[str] = None) -> Optional[VideoAsset]:
        """Download footage for one keyword.

        On success the keyword becomes downloaded for good and the asset is
        appended to the aggregate artifact. No-op for a keyword that is
        downloaded or already downloading.

        Returns:
            The new asset, or None if the request was rejected

        Raises:
            EngineError: If the download fails; the item reverts first
        """
        item = self.item(keyword)
        if item.downloaded or keyword in self._downloading:
            logger.debug("Download for %r rejected (status=%s)", keyword, item.status.value)
            return None
        if source:
            item.source = source

        epoch = self._epoch
        downloading = self._downloading
        downloading.add(keyword)
        item.status = AssetStatus.DOWNLOADING
        try:
            async with self._slot():
                response = await self.client.download_single_asset(
                    keyword, item.source, self.session_id,
                )
            result = unwrap(response)
        except EngineError as e:
            self.error = f"Download for '{keyword}' failed: {e}"
            logger.warning(self.error)
            raise
        finally:
            downloading.discard(keyword)
            self._settle(item)

        item.asset = result.asset
        item.status = AssetStatus.DOWNLOADED
        asset = VideoAsset(
            keyword=result.keyword,
            file_path=result.asset.path,
            exists=True,
            source=result.source,
            duration=result.asset.duration,
            orientation="landscape",
        )
        if epoch != self._epoch:
            logger.info("Discarding download of %r for a superseded keyword list", keyword)
            return asset
        self._downloaded.append(asset)
        logger.info("Downloaded %r from %s -> %s", keyword, result.source, result.asset.path)
        self._publish(AssetsData(session_id=self.session_id or "", assets=list(self._downloaded)))
        return asset

    async def download_all(self, keywords: Optional[Iterable[str]] = None) -> AssetsData:
        """Fetch footage for every keyword in one batched request.

        The result is positional and may contain ``None`` entries for
        keywords that could not be fetched. It replaces whatever the assets
        slot held before.

        Raises:
            EngineError: If the batch request itself fails
        """
        batch = list(keywords) if keywords is not None else list(self.keywords)
        if not batch:
            raise ValueError("No keywords to fetch assets for")

        try:
            data = unwrap(await self.client.fetch_assets(batch, self.session_id))
        except EngineError as e:
            self.error = f"Fetching assets failed: {e}"
            logger.warning(self.error)
            raise

        failed = data.failed_positions()
        if failed:
            logger.warning(
                "Asset batch: %d/%d keywords failed (%s)",
                len(failed), len(data.assets),
                ", ".join(batch[i] for i in failed if i < len(batch)),
            )
        self._publish(data)
        return data

    def _publish(self, data: AssetsData) -> None:
        if self.controller is not None:
            self.controller.set_artifact(ArtifactKind.ASSETS, data)

    def snapshot(self) -> dict:
        return {
            "keywords": list(self.keywords),
            "items": [item.to_dict() for item in self.items.values()],
            "downloaded": [asset.model_dump() for asset in self._downloaded],
            "error": self.error,
        }
