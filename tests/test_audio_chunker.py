from aligned_pipeline.domain.audio_chunker import AudioChunker, format_for_mime, mime_for_format
from aligned_pipeline.domain.models import AudioCapture

from conftest import make_wav, wav_frame_count


class TestAudioChunker:
    def test_short_capture_is_passed_through_untouched(self):
        capture = AudioCapture(data=b"x" * 1000, mime_type="audio/webm", duration_seconds=3)

        chunks = AudioChunker().split(capture, 25_000, 30_000)

        assert len(chunks) == 1
        assert chunks[0].data is capture.data
        assert chunks[0].mime_type == "audio/webm"
        assert chunks[0].duration_ms == 3000

    def test_seventy_seconds_splits_into_three_ordered_chunks(self):
        capture = AudioCapture(data=make_wav(70), mime_type="audio/wav", duration_seconds=70)

        chunks = AudioChunker().split(capture, 25_000, 30_000)

        assert [chunk.index for chunk in chunks] == [0, 1, 2]
        assert [chunk.duration_ms for chunk in chunks] == [25_000, 25_000, 20_000]
        assert [wav_frame_count(chunk.data) for chunk in chunks] == [200_000, 200_000, 160_000]
        assert all(chunk.mime_type == "audio/wav" for chunk in chunks)
        assert all(chunk.data.startswith(b"RIFF") for chunk in chunks)

    def test_silent_trailing_chunk_is_dropped(self):
        capture = AudioCapture(
            data=make_wav(50, silent_tail_seconds=5), mime_type="audio/wav", duration_seconds=55
        )

        chunks = AudioChunker().split(capture, 25_000, 30_000)

        assert len(chunks) == 2
        assert [chunk.duration_ms for chunk in chunks] == [25_000, 25_000]

    def test_real_duration_within_limit_is_not_split(self):
        # Large estimate, but the decoded audio is short
        capture = AudioCapture(data=make_wav(20, sample_rate_hz=48_000), mime_type="audio/wav")

        chunks = AudioChunker().split(capture, 25_000, 30_000)

        assert len(chunks) == 1
        assert chunks[0].data is capture.data
        assert chunks[0].duration_ms == 20_000

    def test_undecodable_capture_falls_back_to_single_chunk(self):
        capture = AudioCapture(data=b"\x01garbage" * 200_000, mime_type="audio/webm")

        chunks = AudioChunker().split(capture, 25_000, 30_000)

        assert len(chunks) == 1
        assert chunks[0].data is capture.data

    def test_estimate_uses_assumed_bitrate(self):
        capture = AudioCapture(data=b"x" * 2000)
        assert AudioChunker(assumed_bitrate_bps=16_000).estimate_duration_ms(capture) == 1000

    async def test_split_async_matches_split(self):
        capture = AudioCapture(data=make_wav(70), mime_type="audio/wav")
        chunks = await AudioChunker().split_async(capture, 25_000, 30_000)
        assert len(chunks) == 3


def test_mime_format_mapping():
    assert format_for_mime("audio/webm;codecs=opus") == "webm"
    assert format_for_mime("audio/x-wav") == "wav"
    assert format_for_mime("video/quicktime") is None
    assert mime_for_format("wav") == "audio/wav"
    assert mime_for_format("xyz") == "application/octet-stream"
