from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, List, Optional

import boto3
from dotenv import find_dotenv, load_dotenv

from .blocks import blocks_from_json
from .config import TEXTRACT, TextractConfig
from .models import Block
from .page_render import PageImage, ensure_dir, load_page_bytes

logger = logging.getLogger(__name__)


def cache_path(page: PageImage, config: TextractConfig = TEXTRACT) -> str:
    return os.path.join(os.path.dirname(page.path), config.cache_dirname, f"{page.label}.json")


class TextractClient:
    """AnalyzeDocument (TABLES + FORMS) with an optional on-disk response cache."""

    def __init__(self, config: TextractConfig = TEXTRACT, client: Any = None):
        self.config = config
        self._client = client

    @property
    def client(self) -> Any:
        # Created lazily so cached runs need no AWS credentials
        if self._client is None:
            # AWS credentials and region may live in a .env file
            load_dotenv(find_dotenv(), override=False)
            region = self.config.region or os.environ.get(self.config.region_env) or self.config.default_region
            self._client = boto3.client("textract", region_name=region)
        return self._client

    def _load_cached(self, path: str) -> Optional[List[dict]]:
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return data.get("Blocks", []) if isinstance(data, dict) else data

    def _save_cached(self, path: str, raw_blocks: List[dict]) -> None:
        ensure_dir(os.path.dirname(path))
        with open(path, "w", encoding="utf-8") as f:
            json.dump(raw_blocks, f, ensure_ascii=False, indent=2, default=str)

    def analyze_raw(self, page: PageImage) -> List[dict]:
        """Raw Textract block dicts for one page."""
        cpath = cache_path(page, self.config)
        if self.config.use_cache:
            cached = self._load_cached(cpath)
            if cached is not None:
                logger.info("Loading cached Textract data for %s", page.label)
                return cached

        data = load_page_bytes(page, dpi=self.config.render_dpi)
        logger.info("Calling Textract for %s (%d bytes)", page.label, len(data))

        last_err: Optional[Exception] = None
        for attempt in range(self.config.retry_limit + 1):
            try:
                resp = self.client.analyze_document(
                    Document={"Bytes": data},
                    FeatureTypes=list(self.config.feature_types),
                )
                raw_blocks = resp.get("Blocks") or []
                logger.info("Textract returned %d blocks for %s", len(raw_blocks), page.label)
                if self.config.save_cache:
                    self._save_cached(cpath, raw_blocks)
                    logger.info("Saved Textract data to %s", cpath)
                return raw_blocks
            except Exception as e:
                last_err = e
                logger.warning("Textract attempt %d failed for %s: %s", attempt + 1, page.label, e)
                if attempt == self.config.retry_limit:
                    break
            time.sleep(1.5 * (attempt + 1))

        raise RuntimeError(f"Failed to analyze {page.label}: {last_err}") from last_err

    def analyze(self, page: PageImage) -> List[Block]:
        return blocks_from_json(self.analyze_raw(page))
