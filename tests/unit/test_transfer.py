"""
Unit tests for the transfer orchestrator.

Covers direct and chunked transfer, per-part retry with fresh URLs,
abort-without-finalize on permanent failure, cancellation, deadlines and
the ordering guarantees of the finalize payload.
"""

import threading
import time

import pytest

from buildstash.core.exceptions import (
    FinalizeError,
    PublicationCancelledError,
    RegistryAPIError,
    RegistryConnectionError,
    RegistryTimeoutError,
    TransferError,
    UploadValidationError,
)
from buildstash.core.models.registry import (
    FileTransfer,
    PendingUpload,
    PresignedData,
    UploadPart,
    UploadPlan,
)
from buildstash.services.upload.transfer import (
    TransferOrchestrator,
    build_complete_payload,
    is_retryable,
)

MIB = 1024 * 1024


def _chunked_plan(handle, role="primary", parts=3, part_size_mb=1, headers=None):
    return UploadPlan(
        role=role,
        filename=handle.name,
        size_bytes=handle.length(),
        chunked=True,
        part_count=parts,
        part_size_mb=part_size_mb,
        presigned=PresignedData(headers=headers) if headers else None,
    )


def _direct_plan(handle, role="primary"):
    return UploadPlan(
        role=role,
        filename=handle.name,
        size_bytes=handle.length(),
        presigned=PresignedData(url=f"https://storage.test/{role}", headers={"x-amz-acl": "private"}),
    )


def _orchestrator(client, **kwargs):
    kwargs.setdefault("backoff_base", 0)
    return TransferOrchestrator(client, **kwargs)


class TestIsRetryable:
    """Tests for the retry predicate."""

    @pytest.mark.parametrize(
        "error,expected",
        [
            (RegistryConnectionError("reset"), True),
            (RegistryTimeoutError("slow"), True),
            (RegistryAPIError("HTTP 503", status_code=503), True),
            (RegistryAPIError("HTTP 429", status_code=429), True),
            (RegistryAPIError("HTTP 408", status_code=408), True),
            (RegistryAPIError("HTTP 403", status_code=403), False),
            (RegistryAPIError("bad payload"), False),
            (ValueError("nope"), False),
        ],
    )
    def test_classification(self, error, expected):
        """Transport failures and transient statuses are retried, others are not."""
        assert is_retryable(error) is expected


class TestDirectTransfer:
    """Tests for non-chunked files."""

    def test_single_put_and_no_part_urls(self, memory_handle, fake_registry):
        """A direct file is one PUT of the whole file with the plan's headers."""
        handle = memory_handle("app.bin", size=1000)
        pending = PendingUpload(pending_upload_id="pu-1", primary=_direct_plan(handle))

        record = _orchestrator(fake_registry).run(pending, {"primary": handle})

        fake_registry.put_presigned.assert_called_once_with(
            "https://storage.test/primary", handle.data, {"x-amz-acl": "private"}
        )
        fake_registry.request_part_url.assert_not_called()
        fake_registry.complete_upload.assert_called_once_with("pu-1", {})
        assert record.build_id == "b-42"

    def test_direct_failure_aborts(self, memory_handle, fake_registry):
        """A direct PUT that is refused aborts before finalize."""
        handle = memory_handle()
        pending = PendingUpload(pending_upload_id="pu-1", primary=_direct_plan(handle))
        fake_registry.put_presigned.side_effect = RegistryAPIError("HTTP 403", status_code=403)

        with pytest.raises(TransferError) as exc_info:
            _orchestrator(fake_registry).run(pending, {"primary": handle})

        assert exc_info.value.file_role == "primary"
        assert exc_info.value.part_number is None
        fake_registry.put_presigned.assert_called_once()
        fake_registry.complete_upload.assert_not_called()


class TestChunkedTransfer:
    """Tests for multipart files."""

    def test_parts_cover_file_and_finalize_in_order(self, memory_handle, fake_registry):
        """Each part PUTs its byte range and finalize lists parts 1..N."""
        handle = memory_handle("game.apk", size=3 * MIB - 7)
        pending = PendingUpload(pending_upload_id="pu-9", primary=_chunked_plan(handle))

        _orchestrator(fake_registry).run(pending, {"primary": handle})

        assert fake_registry.request_part_url.call_count == 3
        assert fake_registry.put_presigned.call_count == 3
        assert sorted(handle.reads) == [(0, MIB), (MIB, 2 * MIB), (2 * MIB, 3 * MIB - 7)]
        lengths = sorted(
            call.kwargs["content_length"] for call in fake_registry.request_part_url.call_args_list
        )
        assert lengths == [MIB - 7, MIB, MIB]

        fake_registry.complete_upload.assert_called_once_with(
            "pu-9",
            {
                "primary_file": {
                    "filename": "game.apk",
                    "parts": [
                        {"part_number": 1, "eTag": '"etag-part-1"'},
                        {"part_number": 2, "eTag": '"etag-part-2"'},
                        {"part_number": 3, "eTag": '"etag-part-3"'},
                    ],
                }
            },
        )

    def test_out_of_order_completion_still_sorted(self, memory_handle, fake_registry):
        """Parts finishing last-to-first are still finalized 1..N."""
        handle = memory_handle(size=4 * MIB)
        pending = PendingUpload(pending_upload_id="pu-1", primary=_chunked_plan(handle, parts=4))
        finished = []
        lock = threading.Lock()

        def slow_put(url, data, headers=None):
            number = int(url.rsplit("-", 1)[-1])
            time.sleep(0.05 * (5 - number))
            with lock:
                finished.append(number)
            return f"etag-{number}"

        fake_registry.put_presigned.side_effect = slow_put

        transfers = _orchestrator(fake_registry, max_workers=4).transfer(pending, {"primary": handle})

        assert finished == [4, 3, 2, 1]
        assert [part.part_number for part in transfers["primary"].parts] == [1, 2, 3, 4]
        assert [part.etag for part in transfers["primary"].parts] == [
            "etag-1",
            "etag-2",
            "etag-3",
            "etag-4",
        ]

    def test_retry_requests_fresh_url(self, memory_handle, fake_registry):
        """A transient failure is retried with a newly requested part URL."""
        handle = memory_handle(size=2 * MIB)
        pending = PendingUpload(pending_upload_id="pu-1", primary=_chunked_plan(handle, parts=2))
        failures = {"part-2": 1}
        lock = threading.Lock()

        def flaky_put(url, data, headers=None):
            key = url.rsplit("/", 1)[-1]
            with lock:
                if failures.get(key):
                    failures[key] -= 1
                    raise RegistryAPIError("HTTP 503", status_code=503)
            return f"etag-{key}"

        fake_registry.put_presigned.side_effect = flaky_put

        _orchestrator(fake_registry).run(pending, {"primary": handle})

        part_numbers = sorted(
            call.kwargs["part_number"] for call in fake_registry.request_part_url.call_args_list
        )
        assert part_numbers == [1, 2, 2]
        fake_registry.complete_upload.assert_called_once()

    def test_exhausted_retries_abort_without_finalize(self, memory_handle, fake_registry):
        """A part failing every attempt aborts the publication."""
        handle = memory_handle(size=3 * MIB)
        pending = PendingUpload(pending_upload_id="pu-1", primary=_chunked_plan(handle))

        def put(url, data, headers=None):
            if url.endswith("part-2"):
                raise RegistryConnectionError("connection reset")
            return "etag"

        fake_registry.put_presigned.side_effect = put

        with pytest.raises(TransferError) as exc_info:
            _orchestrator(fake_registry, max_attempts=3, max_workers=1).run(
                pending, {"primary": handle}
            )

        error = exc_info.value
        assert error.part_number == 2
        assert error.context["stage"] == "transfer"
        assert error.context["attempts"] == 3
        assert isinstance(error.__cause__, RegistryConnectionError)
        fake_registry.complete_upload.assert_not_called()

    def test_permanent_error_not_retried(self, memory_handle, fake_registry):
        """A 403 from storage fails the part on the first attempt."""
        handle = memory_handle(size=MIB)
        pending = PendingUpload(pending_upload_id="pu-1", primary=_chunked_plan(handle, parts=1))
        fake_registry.put_presigned.side_effect = RegistryAPIError("HTTP 403", status_code=403)

        with pytest.raises(TransferError):
            _orchestrator(fake_registry, max_attempts=5).run(pending, {"primary": handle})

        assert fake_registry.put_presigned.call_count == 1

    def test_missing_etag_fails_part(self, memory_handle, fake_registry):
        """Storage must return an ETag for every part."""
        handle = memory_handle(size=MIB)
        pending = PendingUpload(pending_upload_id="pu-1", primary=_chunked_plan(handle, parts=1))
        fake_registry.put_presigned.side_effect = None
        fake_registry.put_presigned.return_value = None

        with pytest.raises(TransferError, match="ETag"):
            _orchestrator(fake_registry).run(pending, {"primary": handle})
        fake_registry.complete_upload.assert_not_called()

    def test_whole_file_headers_not_sent_per_part(self, memory_handle, fake_registry):
        """Plan headers go with each part except whole-file ones like Content-Length."""
        handle = memory_handle(size=2 * MIB)
        plan = _chunked_plan(
            handle, parts=2, headers={"Content-Type": "application/zip", "Content-Length": "999"}
        )
        pending = PendingUpload(pending_upload_id="pu-1", primary=plan)

        _orchestrator(fake_registry).transfer(pending, {"primary": handle})

        for call in fake_registry.put_presigned.call_args_list:
            assert call.args[2] == {"Content-Type": "application/zip"}

    def test_primary_and_expansion(self, memory_handle, fake_registry):
        """Direct primary plus chunked expansion finalize only the chunked file."""
        primary = memory_handle("game.apk", size=100)
        expansion = memory_handle("main.obb", size=2 * MIB)
        pending = PendingUpload(
            pending_upload_id="pu-1",
            primary=_direct_plan(primary),
            expansion=_chunked_plan(expansion, role="expansion", parts=2),
        )

        _orchestrator(fake_registry).run(pending, {"primary": primary, "expansion": expansion})

        body = fake_registry.complete_upload.call_args.args[1]
        assert "primary_file" not in body
        assert body["expansion_files"][0]["filename"] == "main.obb"
        assert [p["part_number"] for p in body["expansion_files"][0]["parts"]] == [1, 2]


class TestCancellation:
    """Tests for cancellation, deadlines and missing handles."""

    def test_cancelled_before_start(self, memory_handle, fake_registry):
        """A pre-set cancel token stops every unit before it sends anything."""
        handle = memory_handle(size=2 * MIB)
        pending = PendingUpload(pending_upload_id="pu-1", primary=_chunked_plan(handle, parts=2))
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(PublicationCancelledError):
            _orchestrator(fake_registry, cancel_event=cancel).run(pending, {"primary": handle})

        fake_registry.put_presigned.assert_not_called()
        fake_registry.complete_upload.assert_not_called()

    def test_cancelled_mid_flight(self, memory_handle, fake_registry):
        """Cancelling while parts run stops new part requests and never finalizes."""
        handle = memory_handle(size=6 * MIB)
        pending = PendingUpload(pending_upload_id="pu-1", primary=_chunked_plan(handle, parts=6))
        cancel = threading.Event()

        def put(url, data, headers=None):
            if url.endswith("part-1"):
                cancel.set()
            else:
                cancel.wait(2)
            return "etag"

        fake_registry.put_presigned.side_effect = put

        with pytest.raises(PublicationCancelledError):
            _orchestrator(fake_registry, max_workers=2, cancel_event=cancel).run(
                pending, {"primary": handle}
            )

        assert fake_registry.request_part_url.call_count < 6
        fake_registry.complete_upload.assert_not_called()

    def test_sibling_failure_ends_backoff(self, memory_handle, fake_registry):
        """A part waiting to retry stops as soon as another part fails for good."""
        handle = memory_handle(size=2 * MIB)
        pending = PendingUpload(pending_upload_id="pu-1", primary=_chunked_plan(handle, parts=2))
        second_failed = threading.Event()
        backoff_threads = []

        def put(url, data, headers=None):
            if url.endswith("part-2"):
                backoff_threads.append(threading.current_thread())
                second_failed.set()
                raise RegistryConnectionError("connection reset")
            second_failed.wait(2)
            raise RegistryAPIError("HTTP 403", status_code=403)

        fake_registry.put_presigned.side_effect = put
        orchestrator = _orchestrator(fake_registry, max_workers=2, backoff_base=10, max_attempts=3)

        started = time.monotonic()
        with pytest.raises(TransferError):
            orchestrator.run(pending, {"primary": handle})

        backoff_threads[0].join(timeout=3)
        assert not backoff_threads[0].is_alive()
        assert time.monotonic() - started < 5
        assert len(backoff_threads) == 1
        fake_registry.complete_upload.assert_not_called()

    def test_deadline_exceeded(self, memory_handle, fake_registry):
        """A transfer running past its deadline is cancelled."""
        handle = memory_handle(size=MIB)
        pending = PendingUpload(pending_upload_id="pu-1", primary=_chunked_plan(handle, parts=1))
        release = threading.Event()

        def stuck_put(url, data, headers=None):
            release.wait(2)
            return "etag"

        fake_registry.put_presigned.side_effect = stuck_put

        try:
            with pytest.raises(PublicationCancelledError) as exc_info:
                _orchestrator(fake_registry, timeout=0.05).run(pending, {"primary": handle})
        finally:
            release.set()

        assert exc_info.value.exit_code == 130
        fake_registry.complete_upload.assert_not_called()

    def test_missing_handle(self, memory_handle, fake_registry):
        """Every planned role needs a handle."""
        handle = memory_handle()
        pending = PendingUpload(pending_upload_id="pu-1", primary=_direct_plan(handle))

        with pytest.raises(UploadValidationError):
            _orchestrator(fake_registry).transfer(pending, {})

    def test_invalid_worker_count(self, fake_registry):
        """At least one worker is required."""
        with pytest.raises(ValueError):
            TransferOrchestrator(fake_registry, max_workers=0)


class TestFinalize:
    """Tests for finalize and the completion payload."""

    def test_gap_in_parts_rejected(self, memory_handle):
        """A missing part number never reaches the registry."""
        handle = memory_handle(size=3 * MIB)
        pending = PendingUpload(pending_upload_id="pu-1", primary=_chunked_plan(handle))
        transfers = {
            "primary": FileTransfer(
                role="primary",
                filename=handle.name,
                chunked=True,
                parts=(UploadPart(part_number=1, etag="a"), UploadPart(part_number=3, etag="c")),
            )
        }
        with pytest.raises(FinalizeError, match="incomplete"):
            build_complete_payload(pending, transfers)

    def test_duplicate_parts_rejected(self, memory_handle):
        """Duplicate part numbers are rejected."""
        handle = memory_handle(size=2 * MIB)
        pending = PendingUpload(pending_upload_id="pu-1", primary=_chunked_plan(handle, parts=2))
        parts = (UploadPart(part_number=1, etag="a"), UploadPart(part_number=1, etag="b"))
        transfers = {"primary": FileTransfer(role="primary", filename=handle.name, chunked=True, parts=parts)}

        with pytest.raises(FinalizeError):
            build_complete_payload(pending, transfers)

    def test_payload_sorted(self, memory_handle):
        """Parts recorded out of order are sorted ascending."""
        handle = memory_handle(size=3 * MIB)
        pending = PendingUpload(pending_upload_id="pu-1", primary=_chunked_plan(handle))
        parts = tuple(UploadPart(part_number=n, etag=f"e{n}") for n in (3, 1, 2))
        transfers = {"primary": FileTransfer(role="primary", filename=handle.name, chunked=True, parts=parts)}

        body = build_complete_payload(pending, transfers)

        assert [p["part_number"] for p in body["primary_file"]["parts"]] == [1, 2, 3]

    def test_completion_failure_is_finalize_error(self, memory_handle, fake_registry):
        """A failed completion call is reported as FinalizeError."""
        handle = memory_handle()
        pending = PendingUpload(pending_upload_id="pu-7", primary=_direct_plan(handle))
        fake_registry.complete_upload.side_effect = RegistryAPIError("HTTP 500", status_code=500)

        with pytest.raises(FinalizeError) as exc_info:
            _orchestrator(fake_registry).run(pending, {"primary": handle})

        assert exc_info.value.context["pending_upload_id"] == "pu-7"
        assert exc_info.value.context["stage"] == "finalize"
        fake_registry.complete_upload.assert_called_once()
