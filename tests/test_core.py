#!/usr/bin/env python3
"""
Unit tests for AdScribe core modules.
Tests cover: transcript assembly, quota gate, workspaces, reaper, URL parsing,
config, error codes, and the yt-dlp / ffmpeg / ElevenLabs wrappers.
"""

import sys
import os
import json
import subprocess
import tempfile
import threading
from datetime import date
from pathlib import Path
from unittest import mock

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import unittest

import requests

from adscribe.core.constants import (
    ArtifactKind, ErrorCode, TokenKind, DAILY_LIMIT, UNKNOWN_SPEAKER,
)
from adscribe.core.models import DiarizedToken, FetchStrategy
from adscribe.core.assemble import assemble_lines, format_transcript
from adscribe.core.quota import QuotaGate
from adscribe.core.workspace import WorkspaceManager
from adscribe.core.cleanup import WorkspaceReaper
from adscribe.core.url_parse import (
    is_ad_library_url, extract_ad_id, validate_ad_library_url, parse_input_lines,
)
from adscribe.core.config import AppConfig
from adscribe.core.error_codes import (
    JobError, QuotaExceeded, ArtifactNotFound, WorkspaceCreateError,
    StageFailure,
)
from adscribe.core.security_utils import is_safe_job_id, run_subprocess, redact
from adscribe.core.download_video import (
    download_video, build_ytdlp_args, DEFAULT_STRATEGIES,
)
from adscribe.core.transcode import transcode_audio
from adscribe.core.transcribe_elevenlabs import transcribe_audio, extract_tokens, verify_api_key
from adscribe.core.diagnostics import tool_version, missing_tools
from adscribe.core.output_writer import (
    write_transcript, transcript_preview, download_name,
)


def word(text, speaker=None):
    return DiarizedToken(text=text, kind=TokenKind.WORD, speaker_id=speaker)


def event(text="(laughter)", speaker=None):
    return DiarizedToken(text=text, kind=TokenKind.AUDIO_EVENT, speaker_id=speaker)


class TestTranscriptAssembler(unittest.TestCase):
    """Test speaker-grouped line assembly."""

    def test_speaker_change(self):
        tokens = [word("Hello", "A"), word("there", "A"), word("Hi", "B")]
        self.assertEqual(assemble_lines(tokens), ["A: Hello there", "B: Hi"])

    def test_event_does_not_break_run(self):
        tokens = [word("Hi", "A"), event(), word("again", "A")]
        self.assertEqual(assemble_lines(tokens), ["A: Hi again"])

    def test_event_between_speakers(self):
        tokens = [word("Hi", "A"), event(speaker="B"), word("Yo", "B")]
        self.assertEqual(assemble_lines(tokens), ["A: Hi", "B: Yo"])

    def test_empty(self):
        self.assertEqual(assemble_lines([]), [])
        self.assertEqual(assemble_lines([event(), event()]), [])

    def test_missing_speaker_is_unknown(self):
        self.assertEqual(assemble_lines([word("Hallo")]), [f"{UNKNOWN_SPEAKER}: Hallo"])

    def test_returning_speaker_starts_new_line(self):
        tokens = [word("a", "A"), word("b", "B"), word("c", "A")]
        self.assertEqual(assemble_lines(tokens), ["A: a", "B: b", "A: c"])

    def test_line_count_matches_runs(self):
        speakers = ["A", "A", None, None, "B", "A", "A", "B", "B", "B"]
        tokens = []
        for i, s in enumerate(speakers):
            tokens.append(word(f"w{i}", s))
            if i % 3 == 0:
                tokens.append(event())
        # A | Unknown | B | A | B
        self.assertEqual(len(assemble_lines(tokens)), 5)

    def test_long_transcript(self):
        tokens = [word(f"w{i}", f"S{i // 4 % 2}") for i in range(40000)]
        lines = assemble_lines(tokens)
        self.assertEqual(len(lines), 10000)
        self.assertEqual(lines[0], "S0: w0 w1 w2 w3")
        self.assertEqual(lines[-1], "S1: w39996 w39997 w39998 w39999")

    def test_accepts_generator(self):
        lines = assemble_lines(word(w, "S") for w in ["one", "two"])
        self.assertEqual(lines, ["S: one two"])

    def test_format_transcript(self):
        self.assertEqual(format_transcript(["A: x", "B: y"]), "A: x\nB: y\n")
        self.assertEqual(format_transcript([]), "")


class FakeDay:
    def __init__(self, day: date):
        self.day = day

    def __call__(self) -> date:
        return self.day


class TestQuotaGate(unittest.TestCase):
    """Test the daily quota gate."""

    def test_limit_then_reject(self):
        gate = QuotaGate(today=FakeDay(date(2024, 5, 1)))
        for i in range(DAILY_LIMIT):
            allowed, remaining = gate.admit()
            self.assertTrue(allowed)
            self.assertEqual(remaining, DAILY_LIMIT - i - 1)
        allowed, remaining = gate.admit()
        self.assertFalse(allowed)
        self.assertEqual(remaining, 0)
        with self.assertRaises(QuotaExceeded) as ctx:
            gate.require()
        self.assertEqual(ctx.exception.code, ErrorCode.QUOTA_EXCEEDED)
        self.assertEqual(ctx.exception.limit, DAILY_LIMIT)

    def test_rejection_does_not_increment(self):
        gate = QuotaGate(limit=1, today=FakeDay(date(2024, 5, 1)))
        gate.admit()
        gate.admit()
        gate.admit()
        self.assertEqual(gate.status(), {"count": 1, "limit": 1, "remaining": 0})

    def test_midnight_reset(self):
        clock = FakeDay(date(2024, 5, 1))
        gate = QuotaGate(limit=2, today=clock)
        gate.admit()
        gate.admit()
        self.assertFalse(gate.admit()[0])

        clock.day = date(2024, 5, 2)
        self.assertEqual(gate.status()["count"], 0)
        allowed, remaining = gate.admit()
        self.assertTrue(allowed)
        self.assertEqual(remaining, 1)

    def test_concurrent_admission_never_exceeds_limit(self):
        gate = QuotaGate(limit=DAILY_LIMIT, today=FakeDay(date(2024, 5, 1)))
        results = []
        results_lock = threading.Lock()
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            local = [gate.admit()[0] for _ in range(25)]
            with results_lock:
                results.extend(local)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(results), 200)
        self.assertEqual(sum(results), DAILY_LIMIT)
        self.assertEqual(gate.count, DAILY_LIMIT)


class TestWorkspaceManager(unittest.TestCase):
    """Test per-job workspace handling."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name) / "temp"
        self.ws = WorkspaceManager(self.root)

    def tearDown(self):
        self._tmp.cleanup()

    def test_create_and_paths(self):
        path = self.ws.create("job-1")
        self.assertTrue(path.is_dir())
        self.assertEqual(self.ws.artifact_path("job-1", ArtifactKind.VIDEO),
                         self.root / "job-1" / "video.mp4")
        self.assertEqual(self.ws.artifact_path("job-1", ArtifactKind.AUDIO).name, "audio.mp3")
        self.assertEqual(self.ws.artifact_path("job-1", ArtifactKind.TRANSCRIPT).name,
                         "transcript.txt")

    def test_path_does_not_imply_existence(self):
        self.assertFalse(self.ws.artifact_path("nope", ArtifactKind.VIDEO).exists())
        self.assertFalse(self.ws.exists("nope", ArtifactKind.VIDEO))

    def test_exists_and_require(self):
        self.ws.create("job-1")
        self.assertFalse(self.ws.exists("job-1", ArtifactKind.AUDIO))
        with self.assertRaises(ArtifactNotFound):
            self.ws.require("job-1", ArtifactKind.AUDIO)
        self.ws.artifact_path("job-1", ArtifactKind.AUDIO).write_bytes(b"mp3")
        self.assertTrue(self.ws.exists("job-1", ArtifactKind.AUDIO))
        self.assertEqual(self.ws.artifacts("job-1"),
                         {ArtifactKind.AUDIO: str(self.root / "job-1" / "audio.mp3")})

    def test_remove_is_idempotent(self):
        self.ws.create("job-1")
        for kind in (ArtifactKind.VIDEO, ArtifactKind.AUDIO, ArtifactKind.TRANSCRIPT):
            self.ws.artifact_path("job-1", kind).write_text("x")
        self.ws.remove("job-1")
        for kind in (ArtifactKind.VIDEO, ArtifactKind.AUDIO, ArtifactKind.TRANSCRIPT):
            self.assertFalse(self.ws.exists("job-1", kind))
        self.assertFalse(self.ws.workspace_exists("job-1"))
        self.ws.remove("job-1")
        self.ws.remove("never-existed")

    def test_create_twice_fails(self):
        self.ws.create("job-1")
        with self.assertRaises(WorkspaceCreateError):
            self.ws.create("job-1")

    def test_create_fails_when_storage_unusable(self):
        self.root.parent.mkdir(parents=True, exist_ok=True)
        self.root.write_text("not a directory")
        with self.assertRaises(WorkspaceCreateError) as ctx:
            self.ws.create("job-1")
        self.assertEqual(ctx.exception.code, ErrorCode.WORKSPACE_CREATE)

    def test_unsafe_ids(self):
        self.assertFalse(self.ws.exists("../etc", ArtifactKind.VIDEO))
        with self.assertRaises(ArtifactNotFound):
            self.ws.artifact_path("../etc", ArtifactKind.VIDEO)
        with self.assertRaises(WorkspaceCreateError):
            self.ws.create("a/b")

    def test_unknown_kind(self):
        with self.assertRaises(ValueError):
            self.ws.artifact_path("job-1", "subtitles")

    def test_list_workspaces(self):
        self.assertEqual(self.ws.list_workspaces(), [])
        self.ws.create("b")
        self.ws.create("a")
        self.assertEqual(self.ws.list_workspaces(), ["a", "b"])


class TestWorkspaceReaper(unittest.TestCase):
    """Test stale workspace removal."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.ws = WorkspaceManager(Path(self._tmp.name))

    def tearDown(self):
        self._tmp.cleanup()

    def _age(self, job_id, mtime):
        os.utime(self.ws.root / job_id, (mtime, mtime))

    def test_sweep_removes_only_stale(self):
        now = 1_700_000_000
        self.ws.create("old")
        self.ws.create("fresh")
        self._age("old", now - 3601)
        self._age("fresh", now - 60)

        reaper = WorkspaceReaper(self.ws, ttl_sec=3600, clock=lambda: now)
        self.assertEqual(reaper.sweep(), ["old"])
        self.assertFalse(self.ws.workspace_exists("old"))
        self.assertTrue(self.ws.workspace_exists("fresh"))

    def test_sweep_empty_root(self):
        reaper = WorkspaceReaper(WorkspaceManager(Path(self._tmp.name) / "missing"))
        self.assertEqual(reaper.sweep(), [])

    def test_start_stop(self):
        reaper = WorkspaceReaper(self.ws, interval_sec=3600)
        reaper.start()
        self.assertTrue(reaper.is_running())
        reaper.stop()
        self.assertFalse(reaper.is_running())


class TestURLParsing(unittest.TestCase):
    """Test Ad Library URL validation."""

    GOOD = "https://www.facebook.com/ads/library/?id=1234567890"

    def test_valid(self):
        self.assertTrue(is_ad_library_url(self.GOOD))
        self.assertTrue(is_ad_library_url(self.GOOD + "&country=DE"))
        self.assertEqual(extract_ad_id(self.GOOD), "1234567890")
        self.assertEqual(validate_ad_library_url("  " + self.GOOD + " "), self.GOOD)

    def test_invalid(self):
        for url in ["", "http://www.facebook.com/ads/library/?id=1",
                    "https://www.facebook.com/ads/library/?id=abc",
                    "https://facebook.com/ads/library/?id=1",
                    "https://www.youtube.com/watch?v=dQw4w9WgXcQ"]:
            self.assertFalse(is_ad_library_url(url), url)
            self.assertIsNone(extract_ad_id(url))

    def test_validate_raises_on_invalid(self):
        with self.assertRaises(JobError) as ctx:
            validate_ad_library_url("https://www.google.com")
        self.assertEqual(ctx.exception.code, ErrorCode.INVALID_URL)
        self.assertFalse(ctx.exception.retryable)

    def test_parse_input_lines(self):
        text = f"# ads\n\n  {self.GOOD}\nnot a url\n{self.GOOD}&country=DE\n"
        self.assertEqual(parse_input_lines(text), [self.GOOD, self.GOOD + "&country=DE"])
        self.assertEqual(parse_input_lines(""), [])


class TestErrorCodes(unittest.TestCase):
    """Test error code handling."""

    def test_retryable_errors(self):
        for code in (ErrorCode.DOWNLOAD_FAILED, ErrorCode.TRANSCRIBE_TIMEOUT,
                     ErrorCode.NETWORK_TRANSIENT):
            self.assertTrue(JobError(code, "x").retryable)

    def test_non_retryable_errors(self):
        for code in (ErrorCode.INVALID_URL, ErrorCode.FFMPEG_TRANSCODE,
                     ErrorCode.QUOTA_EXCEEDED):
            self.assertFalse(JobError(code, "x").retryable)

    def test_explicit_retryable_wins(self):
        self.assertFalse(JobError(ErrorCode.DOWNLOAD_FAILED, "x", retryable=False).retryable)

    def test_stage_failure_wrap(self):
        err = JobError(ErrorCode.DOWNLOAD_FAILED, "boom")
        failure = StageFailure.wrap("FETCHING", err)
        self.assertEqual(failure.stage, "FETCHING")
        self.assertEqual(failure.code, ErrorCode.DOWNLOAD_FAILED)
        self.assertTrue(failure.retryable)
        self.assertIn("boom", str(failure))

    def test_artifact_not_found_message(self):
        err = ArtifactNotFound("job-1", ArtifactKind.AUDIO)
        self.assertEqual(err.code, ErrorCode.ARTIFACT_NOT_FOUND)
        self.assertIn("audio", err.message)


class TestConfig(unittest.TestCase):
    """Test configuration loading and validation."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "config.json"

    def tearDown(self):
        self._tmp.cleanup()

    def test_defaults(self):
        cfg = AppConfig(self.path, environ={})
        self.assertEqual(cfg.fetch_timeout_sec, 180)
        self.assertEqual(cfg.workspace_ttl_sec, 3600)
        self.assertEqual(cfg.reaper_interval_sec, 600)
        self.assertEqual(cfg.default_language, "de")
        self.assertIsNone(cfg.api_key)

    def test_saved_values_are_clamped(self):
        self.path.write_text(json.dumps({
            "fetch_timeout_sec": 99999,
            "num_speakers": "lots",
            "workspace_ttl_sec": 1,
        }))
        cfg = AppConfig(self.path, environ={})
        self.assertEqual(cfg.fetch_timeout_sec, 1800)
        self.assertEqual(cfg.num_speakers, 2)
        self.assertEqual(cfg.workspace_ttl_sec, 60)

    def test_broken_file_falls_back_to_defaults(self):
        self.path.write_text("{not json")
        cfg = AppConfig(self.path, environ={})
        self.assertEqual(cfg.fetch_timeout_sec, 180)

    def test_env_overrides(self):
        cfg = AppConfig(self.path, environ={
            "ADSCRIBE_WORKSPACE_ROOT": "/srv/adscribe",
            "ELEVENLABS_API_KEY": "secret",
        })
        self.assertEqual(cfg.workspace_root, Path("/srv/adscribe"))
        self.assertEqual(cfg.api_key, "secret")

    def test_set_persists(self):
        cfg = AppConfig(self.path, environ={})
        cfg.set("default_language", "en")
        self.assertEqual(AppConfig(self.path, environ={}).default_language, "en")
        self.assertNotIn("api_key", json.loads(self.path.read_text()))


class TestSecurityUtils(unittest.TestCase):
    """Test security utilities."""

    def test_safe_job_id(self):
        self.assertTrue(is_safe_job_id("0b8f2c1e-8d1c-4e4b-9a55-0f5e7f3f8d21"))
        self.assertFalse(is_safe_job_id(".."))
        self.assertFalse(is_safe_job_id("a/b"))
        self.assertFalse(is_safe_job_id(""))
        self.assertFalse(is_safe_job_id(None))

    def test_run_subprocess_rejects_strings(self):
        with self.assertRaises(TypeError):
            run_subprocess("ls -la")

    def test_redact(self):
        self.assertEqual(redact("key=abc123", "abc123"), "key=***")
        self.assertEqual(redact("nothing", None), "nothing")


def _completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode,
                                       stdout=stdout, stderr=stderr)


class TestDownloadVideo(unittest.TestCase):
    """Test the yt-dlp wrapper."""

    URL = "https://www.facebook.com/ads/library/?id=42"

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.out = Path(self._tmp.name) / "video.mp4"

    def tearDown(self):
        self._tmp.cleanup()

    def test_strategy_args(self):
        primary, fallback = DEFAULT_STRATEGIES
        args = build_ytdlp_args(self.URL, self.out, primary)
        self.assertEqual(args[0], "yt-dlp")
        self.assertIn("best[ext=mp4]/best", args)
        self.assertNotIn("--user-agent", args)
        self.assertEqual(args[-1], self.URL)

        args = build_ytdlp_args(self.URL, self.out, fallback)
        self.assertEqual(args[args.index("--format") + 1], "best")
        self.assertEqual(args[args.index("--user-agent") + 1], "Mozilla/5.0")
        self.assertIn("--no-check-certificate", args)

    def test_success(self):
        def fake_run(args, timeout):
            self.out.write_bytes(b"video")
            return _completed()

        with mock.patch("adscribe.core.download_video.run_subprocess_capture",
                        side_effect=fake_run) as run:
            path = download_video(self.URL, self.out, DEFAULT_STRATEGIES[0], timeout=5)
        self.assertEqual(path, self.out)
        self.assertEqual(run.call_args.kwargs["timeout"], 5)

    def test_nonzero_exit(self):
        with mock.patch("adscribe.core.download_video.run_subprocess_capture",
                        return_value=_completed(1, stderr="ERROR: unsupported URL")):
            with self.assertRaises(JobError) as ctx:
                download_video(self.URL, self.out, DEFAULT_STRATEGIES[0])
        self.assertEqual(ctx.exception.code, ErrorCode.DOWNLOAD_FAILED)
        self.assertIn("unsupported URL", ctx.exception.message)

    def test_missing_output(self):
        with mock.patch("adscribe.core.download_video.run_subprocess_capture",
                        return_value=_completed(0)):
            with self.assertRaises(JobError) as ctx:
                download_video(self.URL, self.out, DEFAULT_STRATEGIES[0])
        self.assertEqual(ctx.exception.code, ErrorCode.DOWNLOAD_FAILED)

    def test_timeout(self):
        with mock.patch("adscribe.core.download_video.run_subprocess_capture",
                        side_effect=subprocess.TimeoutExpired(["yt-dlp"], 5)):
            with self.assertRaises(JobError) as ctx:
                download_video(self.URL, self.out,
                               FetchStrategy("primary", "best"), timeout=5)
        self.assertEqual(ctx.exception.code, ErrorCode.DOWNLOAD_TIMEOUT)


class TestTranscode(unittest.TestCase):
    """Test the ffmpeg wrapper."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.src = Path(self._tmp.name) / "video.mp4"
        self.out = Path(self._tmp.name) / "audio.mp3"
        self.src.write_bytes(b"video")

    def tearDown(self):
        self._tmp.cleanup()

    def test_args_and_success(self):
        def fake_run(args, timeout):
            self.out.write_bytes(b"mp3")
            return _completed()

        with mock.patch("adscribe.core.transcode.run_subprocess_capture",
                        side_effect=fake_run) as run:
            transcode_audio(self.src, self.out)
        args = run.call_args.args[0]
        self.assertEqual(args[0], "ffmpeg")
        self.assertEqual(args[args.index("-codec:a") + 1], "libmp3lame")
        self.assertEqual(args[args.index("-b:a") + 1], "128k")
        self.assertEqual(args[-1], str(self.out))

    def test_failure(self):
        with mock.patch("adscribe.core.transcode.run_subprocess_capture",
                        return_value=_completed(1, stderr="Invalid data found")):
            with self.assertRaises(JobError) as ctx:
                transcode_audio(self.src, self.out)
        self.assertEqual(ctx.exception.code, ErrorCode.FFMPEG_TRANSCODE)
        self.assertFalse(ctx.exception.retryable)


class TestElevenLabs(unittest.TestCase):
    """Test the Scribe request and response parsing."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.audio = Path(self._tmp.name) / "audio.mp3"
        self.audio.write_bytes(b"\x00" * 1024)

    def tearDown(self):
        self._tmp.cleanup()

    def _response(self, status=200, body=None, text=None):
        resp = mock.Mock()
        resp.status_code = status
        resp.text = text if text is not None else json.dumps(body or {})
        if body is None and text is not None:
            resp.json.side_effect = ValueError("not json")
        else:
            resp.json.return_value = body or {}
        return resp

    def test_request_shape(self):
        body = {"words": [{"text": "Hi", "type": "word", "speaker_id": "speaker_0"}]}
        with mock.patch("adscribe.core.transcribe_elevenlabs.requests.post",
                        return_value=self._response(200, body)) as post:
            result = transcribe_audio(self.audio, "key", language="en")
        self.assertEqual(result, body)
        kwargs = post.call_args.kwargs
        self.assertEqual(kwargs["headers"], {"xi-api-key": "key"})
        self.assertEqual(kwargs["data"]["language_code"], "en")
        self.assertEqual(kwargs["data"]["diarize"], "true")
        self.assertEqual(kwargs["data"]["timestamps_granularity"], "word")
        self.assertEqual(kwargs["data"]["model_id"], "scribe_v1")
        self.assertIn("file", kwargs["files"])
        self.assertGreaterEqual(kwargs["timeout"], 120)

    def test_missing_key(self):
        with self.assertRaises(JobError) as ctx:
            transcribe_audio(self.audio, None)
        self.assertEqual(ctx.exception.code, ErrorCode.API_KEY_MISSING)

    def test_non_2xx(self):
        with mock.patch("adscribe.core.transcribe_elevenlabs.requests.post",
                        return_value=self._response(401, text='{"detail": "bad key"}')):
            with self.assertRaises(JobError) as ctx:
                transcribe_audio(self.audio, "key")
        self.assertEqual(ctx.exception.code, ErrorCode.TRANSCRIBE_FAILED)
        self.assertIn("401", ctx.exception.message)

    def test_timeout(self):
        with mock.patch("adscribe.core.transcribe_elevenlabs.requests.post",
                        side_effect=requests.exceptions.Timeout()):
            with self.assertRaises(JobError) as ctx:
                transcribe_audio(self.audio, "key")
        self.assertEqual(ctx.exception.code, ErrorCode.TRANSCRIBE_TIMEOUT)

    def test_invalid_json(self):
        with mock.patch("adscribe.core.transcribe_elevenlabs.requests.post",
                        return_value=self._response(200, text="<html>")):
            with self.assertRaises(JobError) as ctx:
                transcribe_audio(self.audio, "key")
        self.assertEqual(ctx.exception.code, ErrorCode.TRANSCRIBE_MALFORMED)

    def test_extract_tokens(self):
        tokens = extract_tokens({"words": [
            {"text": "Hallo", "type": "word", "speaker_id": "speaker_0", "start": 0.1, "end": 0.4},
            {"text": " ", "type": "spacing", "speaker_id": "speaker_0"},
            {"text": "(lacht)", "type": "audio_event"},
            {"text": "Tschüss", "type": "word"},
        ]})
        self.assertEqual([t.text for t in tokens], ["Hallo", "(lacht)", "Tschüss"])
        self.assertEqual(tokens[0].speaker_id, "speaker_0")
        self.assertEqual(tokens[0].start, 0.1)
        self.assertEqual(tokens[1].kind, TokenKind.AUDIO_EVENT)
        self.assertIsNone(tokens[2].speaker_id)
        self.assertEqual(assemble_lines(tokens),
                         ["speaker_0: Hallo", "Unknown: Tschüss"])

    @mock.patch("adscribe.core.transcribe_elevenlabs.requests.get")
    def test_verify_api_key(self, get):
        get.return_value = self._response(200, {})
        self.assertEqual(verify_api_key("k"), (True, "Key verified"))
        get.return_value = self._response(401, {})
        self.assertFalse(verify_api_key("k")[0])
        get.side_effect = requests.exceptions.ConnectionError()
        ok, message = verify_api_key("k")
        self.assertFalse(ok)
        self.assertIn("could not reach", message)

    def test_extract_tokens_null_text(self):
        tokens = extract_tokens({"words": [
            {"text": None, "type": "word", "speaker_id": "speaker_0"},
            {"text": "ok", "type": "word", "speaker_id": "speaker_0"},
        ]})
        self.assertEqual(tokens[0].text, "")
        self.assertEqual(assemble_lines(tokens), ["speaker_0: ok"])

    def test_extract_tokens_empty_and_malformed(self):
        self.assertEqual(extract_tokens({}), [])
        for bad in ([], {"words": "nope"}, {"words": ["x"]}):
            with self.assertRaises(JobError) as ctx:
                extract_tokens(bad)
            self.assertEqual(ctx.exception.code, ErrorCode.TRANSCRIBE_MALFORMED)


class TestOutputWriter(unittest.TestCase):
    """Test transcript output helpers."""

    def test_write_overwrites(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "transcript.txt"
            write_transcript("A: one\n", path)
            write_transcript("B: two\n", path)
            self.assertEqual(path.read_text(encoding="utf-8"), "B: two\n")
            self.assertEqual(sorted(p.name for p in Path(tmpdir).iterdir()),
                             ["transcript.txt"])

    def test_preview(self):
        self.assertEqual(transcript_preview("short"), "short")
        long_text = "x" * 600
        self.assertEqual(transcript_preview(long_text), "x" * 500 + "...")

    def test_download_name(self):
        self.assertEqual(download_name("abc", ArtifactKind.VIDEO), "facebook-ad-abc.mp4")
        self.assertEqual(download_name("abc", ArtifactKind.AUDIO), "facebook-ad-abc.mp3")
        self.assertEqual(download_name("abc", ArtifactKind.TRANSCRIPT),
                         "facebook-ad-abc-transcript.txt")


class TestDiagnostics(unittest.TestCase):
    """Test tool version probing."""

    @mock.patch("adscribe.core.diagnostics.run_subprocess_capture")
    def test_first_line(self, run):
        run.return_value = subprocess.CompletedProcess(
            [], 0, stdout="ffmpeg version 6.1\nbuilt with gcc\n", stderr="")
        self.assertEqual(tool_version("ffmpeg", "-version"), "ffmpeg version 6.1")

    @mock.patch("adscribe.core.diagnostics.run_subprocess_capture",
                side_effect=FileNotFoundError)
    def test_not_installed(self, run):
        self.assertEqual(tool_version("yt-dlp", "--version"), "Not installed")

    @mock.patch("adscribe.core.diagnostics.run_subprocess_capture")
    def test_nonzero_exit(self, run):
        run.return_value = subprocess.CompletedProcess([], 3, stdout="", stderr="boom")
        self.assertEqual(tool_version("yt-dlp", "--version"), "Error (rc=3)")

    @mock.patch("adscribe.core.diagnostics.shutil.which", return_value=None)
    def test_missing_tools(self, which):
        self.assertEqual(missing_tools(), ["yt-dlp", "ffmpeg"])


if __name__ == "__main__":
    unittest.main()
