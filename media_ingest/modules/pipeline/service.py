"""Media ingestion pipeline.

Runs one post's ingestion end to end:

1. broker descriptors for the files written directly to storage,
2. upload the main video (multipart) and those files concurrently,
3. trigger conversion once every upload has succeeded,
4. poll conversion status to a terminal state.

Completed steps are recorded so ``resume()`` continues after a failure
instead of starting over. Each step presents its own failure through the
``MessagePresenter`` and then re-raises it.
"""

import asyncio
import logging
from typing import Optional

import httpx

from media_ingest.core.errors import (
    MediaIngestError,
    PollingExhausted,
    ValidationError,
    describe_error,
)
from media_ingest.core.http import ApiClient
from media_ingest.core.logging import (
    bind_ingestion,
    log_error,
    log_info,
    set_ingestion_step,
)
from media_ingest.core.retry import RetryConfig, get_retry_config, retry_async
from media_ingest.modules.conversion.client import ConversionStatusClient, ConversionTrigger
from media_ingest.modules.conversion.poller import ConversionStatusPoller
from media_ingest.modules.conversion.schemas import ConversionState
from media_ingest.modules.pipeline.models import (
    STEP_ORDER,
    IngestJob,
    IngestResult,
    MediaFile,
    PipelineStep,
)
from media_ingest.modules.pipeline.presenter import LoggingPresenter, MessagePresenter
from media_ingest.modules.trim.models import check_trim_bounds
from media_ingest.modules.upload.broker import (
    UploadCredentialBroker,
    file_spec_for,
    validate_file_spec,
)
from media_ingest.modules.upload.executor import DirectUploadExecutor
from media_ingest.modules.upload.models import FileKind, UploadScope
from media_ingest.modules.upload.multipart import MultipartUploader
from media_ingest.modules.upload.progress import (
    ProgressListener,
    UploadProgressState,
    overall_progress,
)
from media_ingest.modules.upload.schemas import FileSpec, UploadDescriptor

logger = logging.getLogger(__name__)


def scope_for(kind: FileKind) -> UploadScope:
    return UploadScope.POST_VIDEO if kind.is_video else UploadScope.POST_IMAGE


class MediaIngestPipeline:
    """Coordinates upload, conversion trigger and status polling for a post."""

    def __init__(
        self,
        api: ApiClient,
        presenter: Optional[MessagePresenter] = None,
        listener: Optional[ProgressListener] = None,
        storage_client: Optional[httpx.AsyncClient] = None,
        upload_retry: Optional[RetryConfig] = None,
        poll_interval: Optional[float] = None,
        poll_max_attempts: Optional[int] = None,
        max_trim_duration: Optional[float] = None,
        part_size: Optional[int] = None,
        sleep=None,
    ):
        """Initialize pipeline.

        Args:
            api: Application server client carrying the caller's session
            presenter: Receives user-facing messages
            listener: Receives per-kind upload progress
            storage_client: HTTP client for storage writes
            upload_retry: Retry policy for direct uploads
            poll_interval: Seconds between status polls
            poll_max_attempts: Status poll budget
            max_trim_duration: Longest allowed trimmed sample
            part_size: Multipart part size for the main video
            sleep: Awaitable sleep used for backoff and polling, for tests
        """
        self.api = api
        self.presenter = presenter or LoggingPresenter()
        self.listener = listener
        self.storage_client = storage_client
        self.upload_retry = upload_retry or get_retry_config("upload")
        self.poll_interval = poll_interval
        self.poll_max_attempts = poll_max_attempts
        self.max_trim_duration = max_trim_duration
        self.part_size = part_size
        self._sleep = sleep

        self.broker = UploadCredentialBroker(api)
        self.trigger = ConversionTrigger(api, max_trim_duration)
        self.status_client = ConversionStatusClient(api)

        self.job: Optional[IngestJob] = None
        self.correlation_id: Optional[str] = None
        self._stop_requested = False
        self._reset_state()

    def _reset_state(self) -> None:
        self.completed_steps: set[PipelineStep] = set()
        self.descriptors: dict[FileKind, UploadDescriptor] = {}
        self.storage_keys: dict[FileKind, str] = {}
        self.tmp_storage_key: Optional[str] = None
        self.poller: Optional[ConversionStatusPoller] = None
        self.progress = UploadProgressState(listener=self.listener)

    @property
    def last_completed_step(self) -> Optional[PipelineStep]:
        done = [step for step in STEP_ORDER if step in self.completed_steps]
        return done[-1] if done else None

    def overall_progress(self) -> int:
        return overall_progress(self.progress)

    def stop(self) -> None:
        """Stop polling. Uploads and the server-side job are unaffected.

        A stop requested before polling starts still holds: the run ends
        without polling once the trigger step is done. ``resume()`` picks
        polling up again.
        """
        self._stop_requested = True
        if self.poller is not None:
            self.poller.stop()

    async def run(self, job: IngestJob) -> IngestResult:
        """Ingest a post's media from the start.

        Args:
            job: Files and options for the post

        Returns:
            IngestResult with the conversion state reached

        Raises:
            ValidationError: If the job is invalid (nothing is sent)
            CredentialError: If descriptors could not be issued
            UploadError: If an upload failed
            ConversionRequestError: If the trigger was refused
            PollingExhausted: If conversion is still running after the poll budget
        """
        correlation_id = bind_ingestion(job.post_id)
        try:
            self._validate(job)
        except ValidationError as e:
            self.presenter.show_error(describe_error(e))
            raise

        self.job = job
        self.correlation_id = correlation_id
        self._reset_state()
        self._stop_requested = False
        for kind in [FileKind.MAIN, *job.direct_files()]:
            self.progress.cell_for(kind)

        log_info(logger, "Starting media ingestion", post_id=job.post_id, need_trim=job.need_trim)
        return await self._execute()

    async def resume(self) -> IngestResult:
        """Continue a failed or stopped run from its last completed step."""
        if self.job is None:
            raise ValidationError("There is no ingestion to resume")
        bind_ingestion(self.job.post_id, self.correlation_id)
        self._stop_requested = False
        log_info(
            logger,
            "Resuming media ingestion",
            post_id=self.job.post_id,
            last_step=self.last_completed_step.value if self.last_completed_step else None,
        )
        return await self._execute()

    async def _execute(self) -> IngestResult:
        if PipelineStep.BROKERED not in self.completed_steps:
            set_ingestion_step("broker")
            await self._present(self._broker())
        if PipelineStep.UPLOADED not in self.completed_steps:
            set_ingestion_step("upload")
            await self._present(self._upload())
        if PipelineStep.TRIGGERED not in self.completed_steps:
            set_ingestion_step("trigger")
            await self._present(self._trigger())
        set_ingestion_step("poll")
        state = await self._await_conversion()

        return IngestResult(
            post_id=self.job.post_id,
            tmp_storage_key=self.tmp_storage_key,
            storage_keys=dict(self.storage_keys),
            conversion_state=state,
        )

    async def _present(self, step) -> None:
        try:
            await step
        except MediaIngestError as e:
            log_error(logger, f"Ingestion step failed: {e.message}", post_id=self.job.post_id)
            self.presenter.show_error(describe_error(e))
            raise

    def _validate(self, job: IngestJob) -> None:
        job.validate()
        validate_file_spec(
            file_spec_for(
                FileKind.MAIN,
                job.main.filename,
                job.main.content_type,
                job.main.size,
                post_id=job.post_id,
                orientation=job.main_orientation,
            ),
            UploadScope.POST_VIDEO,
        )
        if job.need_trim:
            check_trim_bounds(*job.trim, max_duration=self.trigger.max_trim_duration)

    def _file_spec(self, kind: FileKind, file: MediaFile) -> FileSpec:
        job = self.job
        return file_spec_for(
            kind,
            file.filename,
            file.content_type,
            file.size,
            post_id=job.post_id,
            orientation=job.sample_orientation if kind == FileKind.SAMPLE else None,
        )

    # ============================================
    # Steps
    # ============================================
    async def _broker(self) -> None:
        pending = {
            kind: file
            for kind, file in self.job.direct_files().items()
            if kind not in self.storage_keys
        }
        # Expired or previously failed descriptors are never reused
        for kind in list(self.descriptors):
            if kind not in pending or self.descriptors[kind].is_expired():
                del self.descriptors[kind]

        by_scope: dict[UploadScope, list[FileSpec]] = {}
        for kind, file in pending.items():
            if kind not in self.descriptors:
                by_scope.setdefault(scope_for(kind), []).append(self._file_spec(kind, file))

        for scope, specs in by_scope.items():
            self.descriptors.update(await self.broker.request_descriptors(scope, specs))

        self.completed_steps.add(PipelineStep.BROKERED)

    async def _upload(self) -> None:
        kinds: list[FileKind] = []
        uploads = []
        if self.tmp_storage_key is None:
            kinds.append(FileKind.MAIN)
            uploads.append(self._upload_main(self.job.main))
        for kind, file in self.job.direct_files().items():
            if kind not in self.storage_keys:
                kinds.append(kind)
                uploads.append(self._upload_direct(kind, file))

        results = await asyncio.gather(*uploads, return_exceptions=True)

        failures: list[tuple[FileKind, BaseException]] = []
        for kind, result in zip(kinds, results):
            if isinstance(result, BaseException):
                failures.append((kind, result))
            elif kind == FileKind.MAIN:
                self.tmp_storage_key = result
            else:
                self.storage_keys[kind] = result

        for _, error in failures:
            if not isinstance(error, Exception):
                raise error

        if failures:
            for kind, error in failures:
                log_error(logger, f"Upload of '{kind.value}' failed", exception=error)
                self.descriptors.pop(kind, None)
            if any(kind != FileKind.MAIN for kind, _ in failures):
                self.completed_steps.discard(PipelineStep.BROKERED)
            raise failures[0][1]

        self.completed_steps.add(PipelineStep.UPLOADED)

    async def _upload_main(self, file: MediaFile) -> str:
        uploader = MultipartUploader(
            self.api,
            self.progress.cell_for(FileKind.MAIN),
            storage_client=self.storage_client,
            part_size=self.part_size,
            sleep=self._sleep,
        )
        result = await uploader.upload(file.filename, file.content_type, file.source)
        return result.storage_key

    async def _upload_direct(self, kind: FileKind, file: MediaFile) -> str:
        executor = DirectUploadExecutor(self.progress.cell_for(kind), client=self.storage_client)
        descriptor = self.descriptors[kind]
        receipt = await retry_async(
            lambda: executor.upload(descriptor, file.source),
            self.upload_retry,
            sleep=self._sleep,
        )
        return receipt.storage_key

    async def _trigger(self) -> None:
        job = self.job
        await self.trigger.request_conversion(
            job.post_id,
            self.tmp_storage_key,
            need_trim=job.need_trim,
            trim_bounds=job.trim,
            main_orientation=job.main_orientation,
            sample_orientation=job.sample_orientation,
            content_type=job.main.content_type,
        )
        self.completed_steps.add(PipelineStep.TRIGGERED)

    async def _await_conversion(self) -> ConversionState:
        if self._stop_requested:
            state = self.poller.state if self.poller is not None else ConversionState.PENDING
            log_info(logger, "Stopped before conversion polling", post_id=self.job.post_id)
            return state

        if self.poller is None:
            self.poller = ConversionStatusPoller(
                self.status_client,
                self.job.post_id,
                sample_required=self.job.need_trim,
                interval=self.poll_interval,
                max_attempts=self.poll_max_attempts,
                sleep=self._sleep,
            )

        try:
            state = await self.poller.run()
        except PollingExhausted as e:
            self.presenter.show_info(describe_error(e))
            raise

        if state == ConversionState.READY:
            self.completed_steps.add(PipelineStep.CONVERTED)
            self.presenter.show_info("Your video is ready.")
        elif state == ConversionState.FAILED:
            self.presenter.show_error("Video conversion failed. Please upload the video again.")
        return state
