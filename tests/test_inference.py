"""Tests for the inference concurrency pool."""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import pytest
from conftest import encode_image

from classifyx.ml.inference import InferencePool
from classifyx.ml.labels import ClassificationResult

if TYPE_CHECKING:
    from classifyx.ml.image_classifier import ImageClassifier


class TestInferencePool:
    async def test_runs_classifier_on_worker_thread(self, classifier: ImageClassifier) -> None:
        pool = InferencePool(max_concurrent=1)
        try:
            result = await pool.classify(classifier, encode_image((0, 0, 255)))
        finally:
            pool.shutdown()
        assert result.label == "blue"
        assert pool.active_count == 0
        assert pool.queue_depth == 0

    async def test_concurrent_requests_share_compiled_model(self, classifier: ImageClassifier) -> None:
        pool = InferencePool(max_concurrent=4)
        images = [encode_image(color) for color in [(255, 0, 0), (0, 255, 0), (0, 0, 255)] * 4]
        try:
            results = await asyncio.gather(*(pool.classify(classifier, image) for image in images))
        finally:
            pool.shutdown()
        assert [r.label for r in results] == ["red", "green", "blue"] * 4

    async def test_times_out_when_saturated(self) -> None:
        release = threading.Event()
        blocking = MagicMock()
        blocking.classify.side_effect = lambda _: release.wait(5) and ClassificationResult("x", 1.0, 1)

        pool = InferencePool(max_concurrent=1, slot_timeout=0.05)
        try:
            first = asyncio.create_task(pool.classify(blocking, b"a"))
            await asyncio.sleep(0.01)
            assert pool.active_count == 1

            with pytest.raises(TimeoutError):
                await pool.classify(blocking, b"b")
            assert pool.queue_depth == 0

            release.set()
            assert (await first).label == "x"
        finally:
            release.set()
            pool.shutdown()

    async def test_cancelled_request_keeps_slot_until_worker_finishes(self) -> None:
        release = threading.Event()
        blocking = MagicMock()
        blocking.classify.side_effect = lambda _: release.wait(5) and ClassificationResult("x", 1.0, 1)

        pool = InferencePool(max_concurrent=1, slot_timeout=0.05)
        try:
            first = asyncio.create_task(pool.classify(blocking, b"a"))
            await asyncio.sleep(0.01)
            first.cancel()
            with pytest.raises(asyncio.CancelledError):
                await first

            assert pool.active_count == 1
            with pytest.raises(TimeoutError):
                await pool.classify(blocking, b"b")
            assert blocking.classify.call_count == 1

            release.set()
            for _ in range(100):
                if pool.active_count == 0:
                    break
                await asyncio.sleep(0.01)
            assert pool.active_count == 0
            assert (await pool.classify(blocking, b"c")).label == "x"
        finally:
            release.set()
            pool.shutdown()
