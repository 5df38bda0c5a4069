"""
End-to-end tests for PublicationPipeline against a mocked registry.

The registry client is a MagicMock; everything between it and the caller
(provenance, request assembly, planning, transfer, finalize) is real.
"""

from datetime import datetime, timezone

import pytest

from buildstash.cli.context import EnvUrlBaseResolver, run_info_from_env
from buildstash.core.exceptions import (
    PlanningError,
    RegistryAPIError,
    TransferError,
    UploadValidationError,
)
from buildstash.core.models.context import BuildContext, RunInfo
from buildstash.core.models.registry import FileUploadInfo, UploadRequestResponse
from buildstash.core.models.upload import VersionInfo
from buildstash.core.models.vcs import VCProvenance
from buildstash.services.metadata import MetadataResolver
from buildstash.services.upload import (
    PublicationInputs,
    PublicationPipeline,
    TransferOrchestrator,
    describe_file,
)
from buildstash.services.workspace import LocalFileHandle

MIB = 1024 * 1024
SHA = "abcdefabcdefabcdefabcdefabcdefabcdefabcd"


def _pipeline(client, url_base=None, detectors=()):
    return PublicationPipeline(
        client,
        resolver=MetadataResolver(detectors=list(detectors)),
        orchestrator=TransferOrchestrator(client, backoff_base=0),
        url_base=url_base,
    )


def _inputs(primary, **overrides):
    values = {
        "primary": primary,
        "version": VersionInfo(major="1", minor="2", patch="3"),
        "platform": "android",
        "stream": "beta",
    }
    values.update(overrides)
    return PublicationInputs(**values)


class TestDirectPublication:
    """A small file published in one PUT."""

    def test_direct_upload(self, memory_handle, fake_registry):
        """One plan, one PUT, one completion, a published record."""
        handle = memory_handle("app.bin", size=MIB)

        record = _pipeline(fake_registry).publish(_inputs(handle), BuildContext())

        payload = fake_registry.request_upload.call_args.args[0]
        assert payload["primary_file"] == {"filename": "app.bin", "size_bytes": MIB}
        assert payload["platform"] == "android"
        assert payload["stream"] == "beta"
        assert payload["version_component_1_major"] == "1"

        fake_registry.put_presigned.assert_called_once_with(
            "https://storage.test/direct",
            handle.data,
            {"Content-Type": "application/octet-stream"},
        )
        fake_registry.request_part_url.assert_not_called()
        fake_registry.complete_upload.assert_called_once_with("pu-1", {})
        assert record.build_id == "b-42"
        assert record.pending_processing is False

    def test_local_file_handle(self, artifact_file, fake_registry):
        """A file on disk is published with its basename and exact bytes."""
        path = artifact_file("app.bin", size=4096)

        _pipeline(fake_registry).publish(_inputs(LocalFileHandle(path)), BuildContext())

        sent = fake_registry.put_presigned.call_args.args[1]
        assert sent == path.read_bytes()
        assert fake_registry.request_upload.call_args.args[0]["primary_file"]["filename"] == "app.bin"


class TestChunkedPublication:
    """A file the registry splits into parts."""

    def test_three_part_upload(self, memory_handle, fake_registry):
        """Three part URLs, three PUTs and a completion with ETags in order."""
        fake_registry.request_upload.return_value = UploadRequestResponse(
            pending_upload_id="pu-7",
            primary_file=FileUploadInfo(
                filename="game.apk",
                chunked_upload=True,
                chunked_number_parts=3,
                chunked_part_size_mb=1,
            ),
        )
        handle = memory_handle("game.apk", size=3 * MIB)

        record = _pipeline(fake_registry).publish(_inputs(handle), BuildContext())

        assert fake_registry.request_part_url.call_count == 3
        assert fake_registry.put_presigned.call_count == 3
        body = fake_registry.complete_upload.call_args.args[1]
        assert [part["part_number"] for part in body["primary_file"]["parts"]] == [1, 2, 3]
        assert [part["eTag"] for part in body["primary_file"]["parts"]] == [
            '"etag-part-1"',
            '"etag-part-2"',
            '"etag-part-3"',
        ]
        assert record.build_id == "b-42"

    def test_one_mib_file_in_three_parts(self, memory_handle, fake_registry):
        """The server's part count wins even when it exceeds what the part size needs."""
        fake_registry.request_upload.return_value = UploadRequestResponse(
            pending_upload_id="pu-1",
            primary_file=FileUploadInfo(
                filename="app.bin",
                chunked_upload=True,
                chunked_number_parts=3,
                chunked_part_size_mb=1,
            ),
        )
        handle = memory_handle("app.bin", size=MIB)

        record = _pipeline(fake_registry).publish(_inputs(handle), BuildContext())

        assert fake_registry.request_part_url.call_count == 3
        assert fake_registry.put_presigned.call_count == 3
        lengths = sorted(
            call.kwargs["content_length"] for call in fake_registry.request_part_url.call_args_list
        )
        assert sum(lengths) == MIB
        assert all(length > 0 for length in lengths)
        sent = sorted(fake_registry.put_presigned.call_args_list, key=lambda call: call.args[0])
        assert b"".join(call.args[1] for call in sent) == handle.data
        body = fake_registry.complete_upload.call_args.args[1]
        assert [part["part_number"] for part in body["primary_file"]["parts"]] == [1, 2, 3]
        assert record.build_id == "b-42"

    def test_failed_part_never_finalizes(self, memory_handle, fake_registry):
        """A permanently failing part stops the publication before completion."""
        fake_registry.request_upload.return_value = UploadRequestResponse(
            pending_upload_id="pu-7",
            primary_file=FileUploadInfo(chunked_upload=True, chunked_number_parts=2, chunked_part_size_mb=1),
        )
        fake_registry.put_presigned.side_effect = RegistryAPIError("HTTP 403", status_code=403)

        with pytest.raises(TransferError):
            _pipeline(fake_registry).publish(_inputs(memory_handle(size=2 * MIB)), BuildContext())
        fake_registry.complete_upload.assert_not_called()

    def test_expansion_file(self, memory_handle, fake_registry):
        """Primary and expansion files are both planned and transferred."""
        fake_registry.request_upload.return_value = UploadRequestResponse(
            pending_upload_id="pu-8",
            primary_file=FileUploadInfo(
                filename="game.apk",
                presigned_data={"url": "https://storage.test/primary"},
            ),
            expansion_files=[
                FileUploadInfo(
                    filename="main.obb",
                    chunked_upload=True,
                    chunked_number_parts=2,
                    chunked_part_size_mb=1,
                )
            ],
        )
        inputs = _inputs(
            memory_handle("game.apk", size=100),
            expansion=memory_handle("main.obb", size=2 * MIB),
        )

        _pipeline(fake_registry).publish(inputs, BuildContext())

        payload = fake_registry.request_upload.call_args.args[0]
        assert payload["structure"] == "file+expansion"
        assert payload["expansion_files"] == [{"filename": "main.obb", "size_bytes": 2 * MIB}]
        body = fake_registry.complete_upload.call_args.args[1]
        assert list(body) == ["expansion_files"]
        assert body["expansion_files"][0]["filename"] == "main.obb"


class TestBuildRequest:
    """Tests for request assembly."""

    def test_missing_primary_file(self, memory_handle, fake_registry):
        """A missing file is rejected before the registry is contacted."""
        handle = memory_handle()
        handle.present = False

        with pytest.raises(UploadValidationError, match="not found"):
            _pipeline(fake_registry).publish(_inputs(handle), BuildContext())
        fake_registry.request_upload.assert_not_called()

    def test_describe_file_uses_basename(self, memory_handle):
        """Directory components never reach the registry."""
        descriptor = describe_file("primary", memory_handle("out/release/app.bin", size=5))
        assert descriptor.filename == "app.bin"
        assert descriptor.size_bytes == 5

    def test_caller_provenance_completed_by_detectors(self, memory_handle, fake_registry):
        """Caller-supplied fields are kept and detectors fill the rest."""
        from buildstash.plugins.vcs import GitEnvironmentDetector

        env = {"GIT_URL": "https://github.com/acme/widget.git", "GIT_BRANCH": "origin/dev", "GIT_COMMIT": SHA}
        pipeline = _pipeline(fake_registry, detectors=[GitEnvironmentDetector()])

        request = pipeline.build_request(
            _inputs(memory_handle(), vc=VCProvenance(branch="release")), BuildContext(env=env)
        )

        assert request.vc.branch == "release"
        assert request.vc.commit_sha == SHA
        assert request.vc.commit_url == f"https://github.com/acme/widget/commit/{SHA}"

    def test_ci_provenance_with_root_url(self, memory_handle, fake_registry):
        """Relative run URLs are made absolute against the runtime root."""
        env = {
            "JOB_NAME": "widget",
            "BUILD_NUMBER": "42",
            "BUILD_URL": "job/widget/42/",
            "JOB_URL": "job/widget/",
            "JENKINS_URL": "https://ci.acme.com/",
        }
        run = run_info_from_env(env)
        pipeline = _pipeline(fake_registry, url_base=EnvUrlBaseResolver(env))

        request = pipeline.build_request(_inputs(memory_handle(), run=run), BuildContext())

        assert request.ci.pipeline == "widget"
        assert request.ci.run_id == "42"
        assert request.ci.run_url == "https://ci.acme.com/job/widget/42/"
        assert request.ci.pipeline_url == "https://ci.acme.com/job/widget/"

    def test_ci_duration(self, memory_handle, fake_registry):
        """A finished run's duration is reported as HH:MM:SS."""
        run = RunInfo(pipeline="widget", run_id="1", duration_seconds=3725)
        request = _pipeline(fake_registry).build_request(_inputs(memory_handle(), run=run), BuildContext())
        assert request.ci.build_duration == "01:02:05"

    def test_without_run_only_source_is_sent(self, memory_handle, fake_registry):
        """Outside CI the payload carries just the source."""
        request = _pipeline(fake_registry).build_request(_inputs(memory_handle()), BuildContext())
        assert request.ci.source == "jenkins"
        assert request.ci.pipeline is None


class TestPreview:
    """Tests for dry-run previews."""

    def test_preview_does_not_contact_registry(self, memory_handle, fake_registry):
        """The preview is the payload that would be sent."""
        started = datetime(2024, 1, 1, tzinfo=timezone.utc)
        inputs = _inputs(
            memory_handle("app.bin", size=10),
            labels=["nightly"],
            run=RunInfo(pipeline="widget", run_id="3", started_at=started),
        )

        payload = _pipeline(fake_registry).preview(inputs, BuildContext())

        assert payload["primary_file"] == {"filename": "app.bin", "size_bytes": 10}
        assert payload["labels"] == ["nightly"]
        assert payload["ci_pipeline"] == "widget"
        assert "ci_build_duration" in payload
        fake_registry.request_upload.assert_not_called()

    def test_preview_validates(self, memory_handle, fake_registry):
        """An invalid request fails the preview too."""
        with pytest.raises(UploadValidationError):
            _pipeline(fake_registry).preview(_inputs(memory_handle(), platform=""), BuildContext())


class TestFromConfig:
    """Tests for PublicationPipeline.from_config."""

    def test_transfer_settings_from_config(self, isolated_env, fake_registry):
        """transfer.* settings configure the orchestrator."""
        config_dir = isolated_env / ".buildstash"
        config_dir.mkdir()
        (config_dir / "config.toml").write_text(
            "[transfer]\nmax_workers = 2\nmax_attempts = 5\n\n[upload]\nsource = \"teamcity\"\n"
        )

        pipeline = PublicationPipeline.from_config(fake_registry, start_dir=str(isolated_env))

        assert pipeline._orchestrator._max_workers == 2
        assert pipeline._orchestrator._max_attempts == 5
        assert pipeline._source == "teamcity"

    def test_planning_failure_propagates(self, isolated_env, memory_handle, fake_registry):
        """Registry errors during planning surface as PlanningError."""
        fake_registry.request_upload.side_effect = RegistryAPIError("HTTP 500", status_code=500)
        pipeline = PublicationPipeline.from_config(fake_registry, start_dir=str(isolated_env))

        with pytest.raises(PlanningError):
            pipeline.publish(_inputs(memory_handle()), BuildContext())
