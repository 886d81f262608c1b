"""
Session Runner - Drives a ProctorSession from a live camera

One tick per captured frame: the next frame is only read after the
previous tick (including its model calls) has finished.

Usage:
    python -m examguard.proctor.runner --name "Jane Doe" --duration 600 --record session.mp4
"""

import argparse
import asyncio
import logging
import os
from pathlib import Path
from typing import AsyncIterator, Optional

import cv2
import numpy as np

from ..config import settings
from ..utils.logging_config import setup_logging
from .reporting import EXPORTERS, report_filename
from .session import ProctorSession, load_detectors
from .sinks import EventLogStore, HttpEventSink, LocalEventSink, MongoEventMirror, VideoUploader

logger = logging.getLogger(__name__)


async def camera_frames(camera_index: int = 0, width: int = 640, height: int = 480) -> AsyncIterator[np.ndarray]:
    """Yield BGR frames from a webcam until it stops delivering"""
    cap = cv2.VideoCapture(camera_index)
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

    if not cap.isOpened():
        raise RuntimeError(f"Camera {camera_index} not found")

    try:
        while True:
            ok, frame = await asyncio.to_thread(cap.read)
            if not ok:
                logger.warning("Camera stopped delivering frames")
                break
            yield frame
    finally:
        cap.release()


class FrameRecorder:
    """Writes frames to an MP4 file; opened lazily on the first frame"""

    def __init__(self, path: str, fps: float = 15.0):
        self.path = path
        self.fps = fps
        self._writer = None

    def write(self, frame: np.ndarray):
        if self._writer is None:
            height, width = frame.shape[:2]
            fourcc = cv2.VideoWriter_fourcc(*"mp4v")
            self._writer = cv2.VideoWriter(self.path, fourcc, self.fps, (width, height))
        self._writer.write(frame)

    def close(self):
        if self._writer is not None:
            self._writer.release()
            self._writer = None


async def run_session(
    session: ProctorSession,
    frames: AsyncIterator[np.ndarray],
    recorder: Optional[FrameRecorder] = None,
    duration_s: Optional[float] = None
):
    """
    Tick the session once per frame until frames run out, the session
    is stopped, or `duration_s` elapses.
    """
    if not session.aggregator.is_started:
        session.start()

    deadline = session.aggregator.started_at_ms + duration_s * 1000 if duration_s else None

    async for frame in frames:
        if not session.is_active:
            break
        if recorder is not None:
            recorder.write(frame)

        await session.tick(frame)

        if deadline is not None and session.now() >= deadline:
            logger.info(f"Session duration of {duration_s}s reached")
            break


def save_reports(session: ProctorSession, output_dir: str):
    """Write JSON, CSV and PDF exports of the session report"""
    os.makedirs(output_dir, exist_ok=True)
    for fmt, (exporter, _) in EXPORTERS.items():
        path = Path(output_dir) / report_filename(session.report, fmt)
        content = exporter(session.report)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        logger.info(f"Saved {fmt.upper()} report to {path}")


async def _run(args: argparse.Namespace):
    face_model, object_model = load_detectors(settings)

    sink_url = args.sink_url or settings.EVENT_SINK_URL
    mirror = None
    if sink_url:
        sink = HttpEventSink(sink_url, timeout=settings.SINK_TIMEOUT_SECONDS)
    else:
        if settings.MONGODB_URI:
            mirror = MongoEventMirror(settings.MONGODB_URI, db_name=settings.MONGODB_DBNAME)
        sink = LocalEventSink(EventLogStore(settings.LOGS_FILE), mirror=mirror)

    upload_url = args.upload_url or settings.VIDEO_UPLOAD_URL
    uploader = VideoUploader(upload_url) if upload_url else None

    session = ProctorSession(
        candidate_name=args.name,
        face_model=face_model,
        object_model=object_model,
        sink=sink,
        video_uploader=uploader
    )
    recorder = FrameRecorder(args.record) if args.record else None

    try:
        await run_session(session, camera_frames(args.camera), recorder, args.duration)
    finally:
        if recorder is not None:
            recorder.close()
        report = session.stop(recording=args.record if recorder is not None else None)
        save_reports(session, args.output_dir)
        await session.aclose()
        if mirror is not None:
            await mirror.close()
        print(f"Stopped. Integrity score: {report.integrity_score} ({report.grade}), duration {report.duration_human}")


def main():
    parser = argparse.ArgumentParser(description="Run a proctoring session against a local webcam")
    parser.add_argument("--name", type=str, default="Unknown", help="Candidate name for the report")
    parser.add_argument("--camera", type=int, default=0, help="OpenCV camera index")
    parser.add_argument("--duration", type=float, default=None, help="Stop after this many seconds")
    parser.add_argument("--output-dir", type=str, default="reports", help="Where to write JSON/CSV/PDF reports")
    parser.add_argument("--record", type=str, default=None, help="Record the session to this MP4 path")
    parser.add_argument("--sink-url", type=str, default=None, help="POST events to this /api/log URL")
    parser.add_argument("--upload-url", type=str, default=None, help="Upload the recording to this URL on stop")
    args = parser.parse_args()

    setup_logging("examguard-runner", level=settings.LOG_LEVEL, log_to_file=settings.LOG_TO_FILE, log_dir=settings.LOG_DIR)

    try:
        asyncio.run(_run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
