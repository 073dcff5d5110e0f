import os
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class CaptureError(Exception):
    """The camera could not be recorded."""


class CaptureRejected(Exception):
    """A capture was requested for an alert that already has one in flight."""


class FfmpegRecorder:
    """
    Records a network camera stream with an ffmpeg child process.

    ffmpeg runs out of process; cancelling `record` kills it, so the caller's
    deadline is a hard one.
    """

    def __init__(self, binary: str = "ffmpeg"):
        self.binary = binary

    def command(self, source: str, output: Path, duration: int):
        cmd = [self.binary, "-hide_banner", "-loglevel", "error", "-y"]
        if source.startswith("rtsp://"):
            cmd += ["-rtsp_transport", "tcp"]
        cmd += ["-i", source, "-t", str(duration), "-an", "-c:v", "copy", "-f", "mp4", str(output)]
        return cmd

    async def record(self, source: str, output: Path, duration: int):
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.command(source, output, duration),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise CaptureError(f"could not start {self.binary}: {e}") from e

        try:
            _, stderr = await proc.communicate()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise

        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip().splitlines()[-1:] if stderr else []
            raise CaptureError(f"ffmpeg exited with {proc.returncode}: {' '.join(detail) or 'no output'}")
        if not output.exists() or output.stat().st_size == 0:
            raise CaptureError("ffmpeg produced no video")


def clip_base_name(alert_id: int, created_at: datetime) -> str:
    """File name, without extension, of the clip recorded for an alert."""
    return f"alert_{alert_id}_{created_at:%Y%m%d_%H%M%S}"


@dataclass
class CaptureJob:
    """One in-flight recording for one alert. Lives in memory only."""
    alert_id: int
    base_name: str
    source: str
    duration: int
    deadline: float
    started_at: datetime = field(default_factory=datetime.utcnow)
    task: Optional[asyncio.Task] = None
    path: Optional[str] = None
    error: Optional[str] = None

    @property
    def done(self) -> bool:
        return self.task is not None and self.task.done()


class CaptureOrchestrator:
    """
    Starts bounded recordings for alerts and links the result to the alert.

    At most one job runs per alert id. A job is finished when the recorder
    returns, fails or overruns `duration + grace_seconds`; failures are logged
    and never retried, leaving the alert without a clip.
    """

    def __init__(
        self,
        store,
        recorder,
        output_dir,
        url_prefix: str = "/videos",
        default_duration: int = 10,
        grace_seconds: float = 5.0,
        on_linked: Optional[Callable[[object], Awaitable[None]]] = None,
    ):
        self.store = store
        self.recorder = recorder
        self.output_dir = Path(output_dir)
        self.url_prefix = url_prefix.rstrip("/")
        self.default_duration = default_duration
        self.grace_seconds = grace_seconds
        self.on_linked = on_linked
        self._jobs: Dict[int, CaptureJob] = {}
        self._closing = False

    def active_jobs(self):
        return list(self._jobs.values())

    def get_job(self, alert_id: int) -> Optional[CaptureJob]:
        return self._jobs.get(alert_id)

    def start(self, alert_id: int, base_name: str, source: str, duration: Optional[int] = None) -> CaptureJob:
        """Registers a job and launches it on a detached task. Never blocks."""
        if self._closing:
            raise CaptureRejected("capture orchestrator is shutting down")
        if alert_id in self._jobs:
            raise CaptureRejected(f"a capture is already running for alert {alert_id}")

        duration = duration or self.default_duration
        loop = asyncio.get_running_loop()
        job = CaptureJob(
            alert_id=alert_id,
            base_name=base_name,
            source=source,
            duration=duration,
            deadline=loop.time() + duration + self.grace_seconds,
        )
        self._jobs[alert_id] = job
        job.task = asyncio.create_task(self._run(job), name=f"capture-{alert_id}")
        job.task.add_done_callback(lambda _t: self._release(job))
        logger.info(f"Capture started for alert {alert_id} ({duration}s from {source})")
        return job

    def _release(self, job: CaptureJob):
        if self._jobs.get(job.alert_id) is job:
            del self._jobs[job.alert_id]

    def owned_clip(self, alert_id: int, video_path: Optional[str]) -> Optional[Path]:
        """
        File in `output_dir` holding the clip recorded here for `alert_id`.

        Returns None for paths this orchestrator did not produce for that
        alert, such as clips supplied by the gateway.
        """
        prefix = f"{self.url_prefix}/"
        if not video_path or not video_path.startswith(prefix):
            return None
        name = video_path[len(prefix):]
        if "/" in name or not name.startswith(f"alert_{alert_id}_") or not name.endswith(".mp4"):
            return None
        return self.output_dir / name

    def cancel(self, alert_id: int) -> bool:
        job = self._jobs.get(alert_id)
        if job is None or job.task is None or job.task.done():
            return False
        job.task.cancel()
        return True

    async def _run(self, job: CaptureJob):
        self.output_dir.mkdir(parents=True, exist_ok=True)
        final = self.output_dir / f"{job.base_name}.mp4"
        partial = self.output_dir / f"{job.base_name}.mp4.part"
        timeout = job.deadline - asyncio.get_running_loop().time()

        try:
            await asyncio.wait_for(self.recorder.record(job.source, partial, job.duration), timeout=timeout)
            os.replace(partial, final)
        except asyncio.TimeoutError:
            job.error = f"no video after {job.duration + self.grace_seconds:.0f}s"
        except CaptureError as e:
            job.error = str(e)
        except asyncio.CancelledError:
            partial.unlink(missing_ok=True)
            logger.warning(f"Capture for alert {job.alert_id} abandoned")
            raise
        except Exception as e:
            logger.exception(f"Unexpected capture failure for alert {job.alert_id}")
            job.error = repr(e)

        if job.error is not None:
            partial.unlink(missing_ok=True)
            logger.error(f"Capture failed for alert {job.alert_id}: {job.error}")
            return

        public_path = f"{self.url_prefix}/{final.name}"
        try:
            linked = await asyncio.to_thread(self.store.set_capture_path, job.alert_id, public_path)
        except Exception as e:
            linked = False
            job.error = f"could not link clip: {e}"
            logger.error(f"Capture for alert {job.alert_id} recorded but not linked: {e}")

        if not linked:
            # alert deleted (or already linked) while recording
            final.unlink(missing_ok=True)
            if job.error is None:
                job.error = "alert no longer accepts a clip"
                logger.info(f"Alert {job.alert_id} gone before its clip was ready; clip discarded")
            return

        job.path = public_path
        logger.info(f"Capture for alert {job.alert_id} saved to {public_path}")

        if self.on_linked is not None:
            try:
                alert = await asyncio.to_thread(self.store.get, job.alert_id)
                if alert is not None:
                    await self.on_linked(alert)
            except Exception as e:
                logger.warning(f"Could not announce clip for alert {job.alert_id}: {e}")

    async def wait(self, timeout: Optional[float] = None):
        """Waits for the jobs running now to finish, without cancelling them."""
        tasks = [job.task for job in self._jobs.values() if job.task is not None]
        if tasks:
            await asyncio.wait(tasks, timeout=timeout)

    async def shutdown(self, timeout: float):
        """Stops taking jobs, lets running ones finish within `timeout`, abandons the rest."""
        self._closing = True
        tasks = [job.task for job in self._jobs.values() if job.task is not None]
        if not tasks:
            return
        logger.info(f"Waiting for {len(tasks)} capture job(s) to finish")
        done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
